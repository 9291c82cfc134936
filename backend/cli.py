import argparse
import asyncio
import json
import logging
import math
import shutil
import sys
from typing import Optional

from client import JobAnalysisClient
from consumer import EstimationState
from exceptions import ClientRequestError
from render import render_estimate, render_job


class TerminalView:
    """Redraws the estimate block in place as the stream grows."""

    def __init__(self, stream=None, columns: Optional[int] = None):
        self.stream = stream or sys.stdout
        self.columns = columns
        self._rows = 0

    def _count_rows(self, text: str) -> int:
        # Long lines wrap, so count screen rows rather than newlines
        columns = self.columns or shutil.get_terminal_size().columns
        return sum(max(1, math.ceil(len(line) / columns)) for line in text.split("\n"))

    def update(self, state: EstimationState) -> None:
        text = render_estimate(state)
        if self._rows:
            # Move the cursor up and clear what was drawn last time
            self.stream.write(f"\x1b[{self._rows}F\x1b[J")
        self.stream.write(text + "\n")
        self.stream.flush()
        self._rows = self._count_rows(text)


async def run(url: str, *, base_url: Optional[str] = None, stream: bool = True, show_json: bool = False) -> int:
    async with JobAnalysisClient(base_url) as api:
        try:
            job = await api.extract_job_data(url)
        except ClientRequestError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(json.dumps(job, indent=2, ensure_ascii=False) if show_json else render_job(job))
        print()

        if not stream:
            try:
                estimate = await api.estimate_salary(job)
            except ClientRequestError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            print(render_estimate(EstimationState(estimate=estimate, complete=True)))
            return 0

        view = TerminalView()
        state = await api.stream_salary_estimate(job, on_update=view.update)
        return 1 if state.has_error else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Extract a job posting and estimate its salary range")
    parser.add_argument("url", help="Job posting URL")
    parser.add_argument("--api", help="Salary API base URL (defaults to SALARY_API_BASE_URL)")
    parser.add_argument("--no-stream", action="store_true", help="Use the blocking estimate endpoint")
    parser.add_argument("--json", action="store_true", help="Print the extracted job record as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    return asyncio.run(run(args.url, base_url=args.api, stream=not args.no_stream, show_json=args.json))


if __name__ == "__main__":
    sys.exit(main())
