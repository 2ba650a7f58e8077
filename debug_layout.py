#!/usr/bin/env python
"""
Retouch layout diagnostic tool

Usage: python debug_layout.py document.pdf [--page N] [--json]

Runs extraction and layout reconstruction on one page and prints the
paragraphs, lines, inferred colors and image placements it finds.
Copy the output when reporting a layout problem.
"""
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

# Add the project root to the import path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from retouch.config.settings import EditorSettings, get_default_settings_path  # noqa: E402
from retouch.processors.color_sampler import sample_background, sample_foreground  # noqa: E402
from retouch.processors.pdf_extractor import ContentExtractor  # noqa: E402
from retouch.processors.pdf_layout import reconstruct_layout  # noqa: E402
from retouch.processors.pymupdf_backend import PyMuPDFPageProvider  # noqa: E402

logger = logging.getLogger("retouch.debug_layout")


def setup_logging(verbose: bool = False) -> logging.Handler:
    """Configure console logging.

    Returns:
        The console handler, to keep a reference alive
    """
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    root_logger.addHandler(console_handler)

    # Quiet pdfminer's per-object parser tracing
    logging.getLogger("pdfminer").setLevel(logging.WARNING)
    return console_handler


async def collect_layout(pdf_data: bytes, page_index: int, settings: EditorSettings) -> dict:
    """Extract and reconstruct one page, returning a JSON-ready report."""
    page = PyMuPDFPageProvider(
        pdf_data,
        page_index,
        zoom=settings.render_zoom,
        device_scale=settings.device_scale,
    )
    try:
        viewport = page.get_viewport_transform()
        extractor = ContentExtractor(min_image_size=settings.min_image_size)
        runs = await extractor.extract_runs(page, viewport)
        paragraphs = reconstruct_layout(runs, viewport.width, settings.layout_thresholds())
        placements = await extractor.extract_image_placements(page)
        raster = page.get_raster_surface()

        report_paragraphs = []
        for paragraph in paragraphs:
            lines = []
            for line in paragraph.lines:
                background = sample_background(
                    raster, line.screen_bbox, settings.background_min_luminance
                )
                lines.append({
                    "text": line.text,
                    "runs": len(line.runs),
                    "screen_bbox": asdict(line.screen_bbox),
                    "doc_x": line.doc_x,
                    "doc_y": line.doc_y,
                    "font": line.dominant_font_id,
                    "font_size": line.dominant_font_size,
                    "background": background,
                    "foreground": sample_foreground(
                        raster,
                        line.screen_bbox,
                        background,
                        settings.foreground_luminance_margin,
                        settings.min_alpha,
                    ),
                })
            report_paragraphs.append({"bbox": asdict(paragraph.bbox), "lines": lines})

        return {
            "page": page_index,
            "page_size": [page.page_width, page.page_height],
            "zoom": settings.render_zoom,
            "runs": len(runs),
            "raster": raster is not None,
            "paragraphs": report_paragraphs,
            "images": [asdict(placement) for placement in placements],
        }
    finally:
        page.close()


def print_report(report: dict) -> None:
    width, height = report["page_size"]
    print("=" * 60)
    print(f"Page {report['page']}: {width:.1f} x {height:.1f} pt (zoom {report['zoom']})")
    print(f"Runs: {report['runs']}  Paragraphs: {len(report['paragraphs'])}  "
          f"Images: {len(report['images'])}")
    if not report["raster"]:
        print("Raster unavailable: colors fall back to defaults")
    print("=" * 60)

    for number, paragraph in enumerate(report["paragraphs"]):
        box = paragraph["bbox"]
        print(f"[{number}] ({box['x0']:.1f}, {box['y0']:.1f}) - ({box['x1']:.1f}, {box['y1']:.1f})")
        for line in paragraph["lines"]:
            print(
                f"    {line['font']} {line['font_size']:.1f}pt "
                f"{line['foreground']} on {line['background']} "
                f"@({line['doc_x']:.1f}, {line['doc_y']:.1f}) | {line['text']}"
            )

    for placement in report["images"]:
        print(
            f"Image {placement['name'] or '-'}: "
            f"({placement['doc_x']:.1f}, {placement['doc_y']:.1f}) "
            f"{placement['doc_w']:.1f} x {placement['doc_h']:.1f}"
        )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Print the reconstructed layout of a PDF page",
    )
    parser.add_argument("pdf", type=Path, help="PDF file to inspect")
    parser.add_argument("--page", type=int, default=0, help="0-based page index")
    parser.add_argument("--settings", type=Path, default=None, help="settings.json path")
    parser.add_argument("--json", action="store_true", help="Output JSON to stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        pdf_data = args.pdf.read_bytes()
    except OSError as e:
        logger.error("Cannot read %s: %s", args.pdf, e)
        return 1

    settings = EditorSettings.load(args.settings or get_default_settings_path())
    try:
        report = asyncio.run(collect_layout(pdf_data, args.page, settings))
    except IndexError as e:
        logger.error("%s", e)
        return 1

    if args.json:
        print(json.dumps(report, ensure_ascii=False, indent=2))
    else:
        print_report(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
