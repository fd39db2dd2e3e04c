#!/usr/bin/env python3
"""
PaneSync CLI

Inspect segmentation and alignment outside an editor.

Usage:
    panesync-align align source.txt target.txt -s en -t es
    panesync-align align source.md target.md -s en -t de --method dp --json
    panesync-align segment chapter.txt -l fr
    panesync-align profiles
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from config.logging_config import configure_logging
from config.settings import get_settings

from .alignment.engine import AlignmentEngine
from .alignment.models import AlignmentMethod
from .language import default_registry
from .quality.indicators import QualityCalculator
from .segmentation.boundary_detector import SentenceBoundaryDetector
from .segmentation.document import SegmentedDocument, segment_document

METHODS = {
    "auto": None,
    "position": AlignmentMethod.POSITION,
    "dp": AlignmentMethod.DYNAMIC_PROGRAMMING,
}


def _read(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _preview(text: str, width: int = 60) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[:width - 3] + "..."


def _segment(path: str, language: str, detector: SentenceBoundaryDetector) -> SegmentedDocument:
    document = segment_document(_read(path), language, detector=detector)
    for warning in document.warnings:
        print(f"  [!] {warning}", file=sys.stderr)
    return document


def cmd_align(args) -> int:
    """Align two files and print entries plus quality"""
    settings = get_settings()
    detector = SentenceBoundaryDetector(supported_languages=settings.supported_languages)
    source = _segment(args.source_file, args.source, detector)
    target = _segment(args.target_file, args.target, detector)

    engine = AlignmentEngine(settings.alignment_config())
    result = engine.align(source, target, force_method=METHODS[args.method])
    quality = QualityCalculator(
        weights=settings.quality_weights(),
        confidence_threshold=settings.confidence_threshold,
        boundary_confidence_floor=settings.boundary_confidence_floor,
    ).calculate(result.entries, source, target, result.unmatched_targets)

    if args.json:
        print(json.dumps({"alignment": result.to_dict(), "quality": quality.to_dict()},
                         ensure_ascii=False, indent=2))
        return 0

    print(f"\n[Alignment] {len(source)} x {len(target)} sentences via {result.method.value} "
          f"({result.processing_time_ms:.1f}ms)\n")
    for entry in result.entries:
        src = source.sentences[entry.source_index]
        tgt = target.sentences[entry.target_index] if entry.target_index is not None else None
        print(f"  [{entry.source_index:>3}] -> [{'-' if tgt is None else entry.target_index:>3}] "
              f"conf={entry.confidence:.3f} {entry.status.value}")
        print(f"        {_preview(src.text)}")
        print(f"        {_preview(tgt.text) if tgt else '(missing)'}")
    for index in result.unmatched_targets:
        print(f"  [  -] -> [{index:>3}] extra: {_preview(target.sentences[index].text)}")

    print(f"\n[Quality] {quality!r}")
    for problem in quality.problem_areas:
        fix = "auto-fixable" if problem.auto_fixable else "manual"
        print(f"  - {problem.issue_type.value} at {problem.side} {problem.span} "
              f"severity={problem.severity:.2f} ({fix})")
        print(f"    {problem.suggestion}")
    return 0


def cmd_segment(args) -> int:
    """Print sentences and structure tags of one file"""
    detector = SentenceBoundaryDetector(supported_languages=get_settings().supported_languages)
    document = _segment(args.file, args.language, detector)

    if args.json:
        print(json.dumps(document.to_dict(), ensure_ascii=False, indent=2))
        return 0

    print(f"\n[Segment] {len(document)} sentences ({document.language})\n")
    for sentence, tag in zip(document.sentences, document.tags):
        print(f"  [{sentence.index:>3}] {sentence.start}-{sentence.end} "
              f"{tag.category.value}/{tag.level} conf={sentence.confidence:.2f} "
              f"{sentence.boundary_type.value}")
        print(f"        {_preview(sentence.text)}")
    return 0


def cmd_profiles(args) -> int:
    """List registered language profiles"""
    enabled = set(get_settings().supported_languages)
    for code in default_registry.languages():
        profile = default_registry.get(code)
        flag = "" if code in enabled else " (disabled)"
        print(f"  {code:<6} {profile.name:<12} avg={profile.average_sentence_length:>5.1f} "
              f"kind={profile.kind.value}{flag}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Sentence alignment for parallel-language documents"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on the console")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Align command
    align_parser = subparsers.add_parser("align", help="Align a source file with a target file")
    align_parser.add_argument("source_file", help="Source language text file")
    align_parser.add_argument("target_file", help="Target language text file")
    align_parser.add_argument("-s", "--source", default="en", help="Source language code")
    align_parser.add_argument("-t", "--target", default="es", help="Target language code")
    align_parser.add_argument("-m", "--method", default="auto", choices=sorted(METHODS),
                              help="Alignment mode")
    align_parser.add_argument("--json", action="store_true", help="Print JSON")

    # Segment command
    segment_parser = subparsers.add_parser("segment", help="Show sentences of a file")
    segment_parser.add_argument("file", help="Text file")
    segment_parser.add_argument("-l", "--language", default="en", help="Language code")
    segment_parser.add_argument("--json", action="store_true", help="Print JSON")

    # Profiles command
    subparsers.add_parser("profiles", help="List language profiles")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging("DEBUG" if args.verbose else "WARNING", log_file=args.log_file, force=True)

    commands = {
        "align": cmd_align,
        "segment": cmd_segment,
        "profiles": cmd_profiles,
    }
    try:
        return commands[args.command](args)
    except FileNotFoundError as e:
        print(f"[X] File not found: {e.filename}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
