import argparse
import asyncio
import json
import logging
import uuid

from dotenv import load_dotenv

from src.gmb_leads.config import LeadSearchConfig
from src.gmb_leads.merge.main import SORTABLE_FIELDS
from src.gmb_leads.parse.schema import LAYOUTS
from src.gmb_leads.run_csv_batch import run_lead_search_csv, write_leads_jsonl
from src.gmb_leads.schema import Coordinates, RankBand, SearchParams
from src.gmb_leads.session import LeadSearchSession
from src.gmb_leads.workflow import run_lead_search
from src.infra.langfuse_observation import search_trace


def _print_countdown(session: LeadSearchSession, state: dict) -> None:
    if session.countdown is not None and session.countdown != state.get("countdown"):
        print(f"Quota cooldown: retrying in {session.countdown}s...")
    state["countdown"] = session.countdown


async def _search_once(
    params: SearchParams, config: LeadSearchConfig, session_id: str | None
) -> LeadSearchSession:
    state: dict = {}

    def runner(search_params: SearchParams):
        return run_lead_search(
            search_params,
            config,
            span_context=search_trace(
                "lead_search_cli",
                session_id,
                keyword=search_params.keyword,
                location=search_params.location,
            ),
        )

    session = LeadSearchSession(
        runner,
        max_auto_retries=config.max_auto_retries,
        listener=lambda s: _print_countdown(s, state),
    )
    try:
        await session.search(params)
        await session.wait_idle()
    finally:
        await session.aclose()
    return session


def register_search(parser: argparse.ArgumentParser) -> None:
    """
    キーワード・地点・半径でリードを検索するCLIコマンド
    """
    parser.add_argument("--keyword", type=str, required=True, help="Business keyword")
    parser.add_argument("--location", type=str, required=True, help="City or area")
    parser.add_argument("--radius", type=float, default=10.0, help="Radius in km")
    parser.add_argument("--lat", type=float, default=None, help="Origin latitude")
    parser.add_argument("--lng", type=float, default=None, help="Origin longitude")
    parser.add_argument("--rank-start", type=int, default=1, help="First rank to target")
    parser.add_argument("--rank-end", type=int, default=20, help="Last rank to target")
    parser.add_argument(
        "--layout",
        choices=sorted(LAYOUTS.keys()),
        default="with_address",
        help="Expected table layout",
    )
    parser.add_argument(
        "--sort-by",
        choices=sorted(SORTABLE_FIELDS),
        default="rank",
        help="Field to sort the printed leads by",
    )
    parser.add_argument("--output", type=str, default=None, help="JSON Lines output")
    parser.add_argument(
        "--session_id",
        type=str,
        default=None,
        help="Langfuse Session ID for trace correlation",
    )

    def func(args: argparse.Namespace) -> None:
        coords = None
        if args.lat is not None and args.lng is not None:
            coords = Coordinates(latitude=args.lat, longitude=args.lng)
        params = SearchParams(
            keyword=args.keyword,
            location=args.location,
            radius_km=args.radius,
            coords=coords,
            rank_band=RankBand(start=args.rank_start, end=args.rank_end),
        )
        config = LeadSearchConfig.from_env(layout=args.layout)

        session = asyncio.run(_search_once(params, config, args.session_id))
        if session.error:
            print(f"Deep Scan Interrupted: {session.error}")
            return

        leads = session.collection.sorted_by(args.sort_by)
        for lead in leads:
            print(json.dumps(lead.model_dump(by_alias=True), ensure_ascii=False))
        print(session.collection.stats().model_dump_json(indent=2))
        if args.output:
            write_leads_jsonl(leads, args.output)

    parser.set_defaults(func=func)


def register_batch(parser: argparse.ArgumentParser) -> None:
    """
    CSVファイルの検索条件をまとめて実行するCLIコマンド
    """
    parser.add_argument("csv_path", type=str, help="CSV with keyword,location,radius_km")
    parser.add_argument("--output", type=str, default=None, help="JSON Lines output")
    parser.add_argument(
        "--session_id",
        type=str,
        default=None,
        help="Langfuse Session ID for trace correlation",
    )

    def func(args: argparse.Namespace) -> None:
        run_lead_search_csv(
            args.csv_path,
            output_path=args.output,
            session_id=args.session_id or f"lead-search-{uuid.uuid4()}",
        )

    parser.set_defaults(func=func)


def build_parser() -> argparse.ArgumentParser:
    """
    CLIコマンドを定義する
    """
    parser = argparse.ArgumentParser(description="GMB lead finder")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_search(subparsers.add_parser("search", help="Search leads near a location"))
    register_batch(subparsers.add_parser("batch", help="Run searches from a CSV file"))

    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
