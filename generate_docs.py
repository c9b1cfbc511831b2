"""CLI entry point: generate documentation from an unpacked PBIP project folder."""

import argparse
import asyncio
import logging
import sys

from pbip_doc.generators.doc_generator import DocumentGenerator
from pbip_doc.parsers.file_classifier import ExtractionError
from pbip_doc.utils.settings import load_settings


def main(argv: list[str] | None = None):
    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="Generate Markdown documentation from a Power BI project (.SemanticModel) folder.",
    )
    parser.add_argument(
        "project_dir",
        help="Path to the .SemanticModel folder (or the project folder containing it)",
    )
    parser.add_argument(
        "-o", "--output",
        default=settings.output_dir,
        help=f"Output directory for the document (default: {settings.output_dir})",
    )
    parser.add_argument(
        "-t", "--title",
        help="Document title (default: taken from item.metadata.json or the folder name)",
    )
    parser.add_argument(
        "--ai-descriptions",
        action=argparse.BooleanOptionalAction,
        default=settings.enrich_with_ai,
        help="Rewrite measure descriptions with Claude (requires ANTHROPIC_API_KEY; default from settings)",
    )
    parser.add_argument(
        "--ai-model",
        default=settings.ai_model,
        help=f"Claude model for AI enrichment (default: {settings.ai_model})",
    )
    parser.add_argument(
        "--cache-path",
        help="Path to AI description cache file (default: <output>/.ai_cache.json)",
    )
    parser.add_argument(
        "--no-diagram",
        action="store_true",
        help="Do not embed the Mermaid relationship diagram",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    generator = DocumentGenerator(
        output_dir=args.output,
        enrich_with_ai=args.ai_descriptions,
        anthropic_api_key=settings.anthropic_api_key or None,
        ai_model=args.ai_model,
        cache_path=args.cache_path,
        include_diagram=settings.include_diagram and not args.no_diagram,
        max_file_chars=settings.max_file_chars,
    )

    try:
        stats = asyncio.run(generator.generate(args.project_dir, args.title))
    except (FileNotFoundError, ExtractionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if generator.result and generator.result.warnings:
        print(f"\n{len(generator.result.warnings)} file(s) could not be fully read:")
        for warning in generator.result.warnings:
            print(f"  - {warning}")

    print("\nGeneration complete:")
    print(f"  Tables:        {stats['tables']}")
    print(f"  Measures:      {stats['measures']}")
    print(f"  Relationships: {stats['relationships']}")
    print(f"  Document:      {stats['path']}")


if __name__ == "__main__":
    main()
