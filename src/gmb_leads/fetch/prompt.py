from ..parse.schema import TableLayout
from ..schema import SearchParams

COLUMN_HEADERS = {
    "name": "Business Name",
    "phone": "Phone",
    "address": "Address",
    "rank": "Rank",
    "website": "Website",
    "maps": "Maps Link",
    "rating": "Rating",
    "distance": "Distance",
}

SYSTEM_PROMPT = """
Role:
- You are a local-search analyst with access to Google Maps.

Rules:
- Use only businesses returned by the Maps tool. Never invent businesses.
- Measure distance from the given origin and write it with a unit (m or km).
- Leave a cell empty when the value is unknown. Do not write placeholders.

Output contract:
- A single markdown table. No preamble, no commentary, no code fences.
"""


def describe_origin(params: SearchParams) -> str:
    if params.coords is not None:
        return (
            f"GPS Coordinates ({params.coords.latitude}, {params.coords.longitude})"
        )
    return params.location


def build_search_prompt(params: SearchParams, layout: TableLayout) -> str:
    headers = " | ".join(COLUMN_HEADERS[column] for column in layout.columns)
    return f"""GMB DEEP SCAN: Identify {params.lead_count} businesses for "{params.keyword}" near {describe_origin(params)}.
STRICT RADIUS LIMIT: {params.radius_km:g}km.
RANKING TARGET: Positions {params.rank_band.start} through {params.rank_band.end}.
REQUIRED COLUMNS (in this order): {headers}
OUTPUT: Markdown table only.
"""
