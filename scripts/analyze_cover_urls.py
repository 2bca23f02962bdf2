"""Analyze the cover URLs carried by a catalog file.

Reports hosts, schemes and URL patterns that tend to fail to load, plus
recommendations. Makes no network requests.

Usage:
  python scripts/analyze_cover_urls.py data/catalog.json
  python scripts/analyze_cover_urls.py data/catalog.json --json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


# Ensure `import libflix...` works when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Analyze catalog cover URLs for likely load failures")
    parser.add_argument("catalog", help="Path to a catalog JSON file")
    parser.add_argument("--top", type=int, default=5, help="How many domains/items to list")
    parser.add_argument("--json", action="store_true", help="Print the analysis as JSON")
    parser.add_argument("--host-policy", help="JSON host policy overrides (same format as COVER_HOST_POLICY_FILE)")
    args = parser.parse_args(argv)

    from libflix.domain.errors import CatalogError
    from libflix.services.catalog import Catalog
    from libflix.services.host_policy import ReliabilityScorer, load_host_policies
    from libflix.utils.url_analyzer import analyze_catalog_urls, format_report

    try:
        catalog = Catalog.from_json_file(args.catalog)
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    policies = None
    if args.host_policy:
        try:
            policies = load_host_policies(args.host_policy)
        except (OSError, ValueError) as e:
            print(f"Error: unable to read host policy {args.host_policy}: {e}", file=sys.stderr)
            return 2

    analysis = analyze_catalog_urls(catalog, ReliabilityScorer(policies))
    if args.json:
        print(json.dumps(analysis.to_dict(), indent=2))
    else:
        print(format_report(analysis, top=args.top))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
