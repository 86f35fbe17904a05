"""Command-line entry point: analyze applications, rank jobs, inspect results."""

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path

from talent_screen.audit import setup_app_logging
from talent_screen.config import Settings
from talent_screen.errors import ScreeningError
from talent_screen.models import AnalysisResult, FallbackExtraction, RankingRun
from talent_screen.pipeline.extract import is_url
from talent_screen.service import ScreeningService, build_service
from talent_screen.utils import to_iso


def _print_analysis(result: AnalysisResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps({**result.to_dict(), "stored": result.stored}, indent=2))
        return
    print(f"=== Analysis: {result.candidate_id} (job {result.key.job_id}) ===")
    print(f"Final: {result.final_score:g}  ({result.score_source})")
    print(f"Resume: {result.resume_score:g}  Questionnaire: {result.questionery_score:g}  "
          f"Compliance: {result.compliance_score:g}")
    print(f"Analyzed at: {to_iso(result.analyzed_at)}{'' if result.stored else '  (NOT STORED)'}")
    if result.strong_points:
        print("\nStrong points:")
        for point in result.strong_points:
            print(f"  + {point}")
    if result.weak_points:
        print("\nWeak points:")
        for point in result.weak_points:
            print(f"  - {point}")
    if result.recruiter_remarks:
        print(f"\nRemarks: {result.recruiter_remarks}")


def _print_ranking(run: RankingRun, as_json: bool) -> None:
    if as_json:
        print(json.dumps(run.to_dict(), indent=2))
        return
    print(f"=== Ranking v{run.ranking_version}: job {run.job_id} ({run.comparison_method}) ===")
    print(run.algorithm_description)
    if not run.entries:
        print("\nNo analyzed candidates to rank.")
    for entry in run.entries:
        print(f"{entry.rank:>3}. {entry.candidate_id}  {entry.rationale}")
    if run.excluded:
        print(f"\nExcluded (not analyzed): {', '.join(run.excluded)}")


async def cmd_analyze(service: ScreeningService, args: argparse.Namespace) -> None:
    result = await service.analyze_application(args.candidate_id, force=args.force, strict=not args.lenient)
    _print_analysis(result, args.json)


async def cmd_results(service: ScreeningService, args: argparse.Namespace) -> None:
    result = await service.get_analysis_results(args.candidate_id)
    if result is None:
        print(f"No current analysis for {args.candidate_id}", file=sys.stderr)
        sys.exit(1)
    _print_analysis(result, args.json)


async def cmd_rank(service: ScreeningService, args: argparse.Namespace) -> None:
    run = await service.rank_candidates_for_job(args.job_id, analyze_missing=args.analyze_missing)
    _print_ranking(run, args.json)


async def cmd_ranking_info(service: ScreeningService, args: argparse.Namespace) -> None:
    info = await service.ranking_info(args.job_id)
    print(json.dumps(info, indent=2, default=lambda v: to_iso(v) if hasattr(v, "astimezone") else str(v)))


async def cmd_parse_resume(service: ScreeningService, args: argparse.Namespace) -> None:
    source = args.source if is_url(args.source) else Path(args.source)
    outcome = await service.parse_resume(source, use_oracle=not args.no_llm)
    out = {"extraction_method": outcome.method, "facts": outcome.facts.to_dict()}
    if isinstance(outcome, FallbackExtraction):
        out["fallback_reason"] = outcome.reason
    print(json.dumps(out, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Screen job applications: analyze candidates and rank them per job")
    parser.add_argument("--api-key", help="Groq API key (or GROQ_API_KEY env)")
    parser.add_argument("--data-dir", type=Path, help="Store directory (or TALENT_SCREEN_DATA_DIR env)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="Analyze one application (cached unless --force)")
    p_analyze.add_argument("candidate_id")
    p_analyze.add_argument("--force", action="store_true", help="Recompute even if a current result exists")
    p_analyze.add_argument("--lenient", action="store_true", help="Allow a missing questionnaire")
    p_analyze.add_argument("--json", action="store_true", help="Output JSON")
    p_analyze.set_defaults(func=cmd_analyze)

    p_results = sub.add_parser("results", help="Show the current stored analysis")
    p_results.add_argument("candidate_id")
    p_results.add_argument("--json", action="store_true", help="Output JSON")
    p_results.set_defaults(func=cmd_results)

    p_rank = sub.add_parser("rank", help="Rank all analyzed candidates of a job")
    p_rank.add_argument("job_id")
    p_rank.add_argument("--analyze-missing", action="store_true", help="Analyze unanalyzed candidates first")
    p_rank.add_argument("--json", action="store_true", help="Output JSON")
    p_rank.set_defaults(func=cmd_rank)

    p_info = sub.add_parser("ranking-info", help="Show ranking metadata for a job")
    p_info.add_argument("job_id")
    p_info.set_defaults(func=cmd_ranking_info)

    p_parse = sub.add_parser("parse-resume", help="Extract candidate facts from a PDF/text file or URL")
    p_parse.add_argument("source", help="Path or http(s) URL")
    p_parse.add_argument("--no-llm", action="store_true", help="Skip the extraction oracle")
    p_parse.set_defaults(func=cmd_parse_resume)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.api_key:
        settings = replace(settings, groq_api_key=args.api_key)
    if args.data_dir:
        settings = replace(settings, data_dir=args.data_dir)
    setup_app_logging(settings.log_dir, settings.log_level)

    service = build_service(settings)
    try:
        asyncio.run(args.func(service, args))
    except ScreeningError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
