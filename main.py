"""DeepReport - topic-to-report research agent

Simple CLI for running research topics.
"""

import argparse
import asyncio

from deepreport.agents.orchestrator import ResearchOrchestrator
from deepreport.services.logger import configure_logging
from deepreport.tools.search_provider import TIME_FILTERS


def print_report(report: dict) -> None:
    print(f"\n{'='*50}")
    print(report.get("title", "REPORT"))
    print(f"{'='*50}")
    print(report.get("summary", ""))
    for section in report.get("sections", []):
        print(f"\n## {section.get('title', '')}\n")
        print(section.get("content", ""))

    sources = report.get("sources", [])
    used = report.get("usedSources", [])
    if used:
        print("\nSources:")
        for index in used:
            if 1 <= index <= len(sources):
                source = sources[index - 1]
                print(f"  [{index}] {source.get('title', '')} - {source.get('url', '')}")


async def run_research(topic: str, model: str | None = None, time_filter: str = "all", language: str | None = None):
    """Run research on the given topic."""
    print(f"Research topic: {topic}")
    print("-" * 50)

    orchestrator = ResearchOrchestrator(model=model)
    seen_insights = 0

    async for event in orchestrator.research(topic, time_filter=time_filter, language=language):
        event_type = event.event.value
        data = event.data

        if event_type == "progress":
            insights = data.get("insights", [])
            for insight in insights[seen_insights:]:
                print(f"[{data.get('step')}] {insight}")
            seen_insights = len(insights)

        elif event_type == "search_result":
            print(f"  [+] {len(data.get('results', []))} results via {data.get('provider', 'search')}")

        elif event_type == "sources_ranked":
            for url in data.get("selected", []):
                print(f"  [*] selected {url}")

        elif event_type == "scrape_result":
            print(f"  [~] fetched {data.get('url')}")

        elif event_type == "research_complete":
            print(f"\n[*] Research Complete!")
            print(f"   Runtime: {data.get('runtime_ms')}ms")
            print_report(data.get("report", {}))

        elif event_type == "error":
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


def main():
    parser = argparse.ArgumentParser(description="DeepReport research agent")
    parser.add_argument("--topic", "-t", required=True, help="Research topic")
    parser.add_argument("--model", "-m", help="Model to use, as platform/model (default: from config)")
    parser.add_argument("--time-filter", "-f", choices=sorted(TIME_FILTERS), default="all")
    parser.add_argument("--language", "-l", choices=["en", "vi"], help="Report language")

    args = parser.parse_args()

    configure_logging()
    asyncio.run(run_research(args.topic, args.model, args.time_filter, args.language))


if __name__ == "__main__":
    main()
