"""Runner script for importing quiz questions from text and documents."""

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union

from ..ai import LLMClient
from ..config import Settings, load_ai_config
from ..documents import DocumentExtractor
from ..importing import BatchImportManager
from ..models import (
    ImportComplete,
    ImportEvent,
    ImportFailed,
    ImportProgress,
    ImportQuestionData,
    ImportResult,
    InputType,
    ParseInput,
)
from ..monitoring import PerformanceMonitor
from ..optimization import AdaptiveStrategy, CostBudget, CostOptimizer, ResultCache
from ..parsers import AIParser, OCREngine, OCRParser
from ..storage import LocalStorage, RecordStore
from .dispatcher import DispatchOutcome, SmartDispatcher, build_local_parsers

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tif", ".tiff", ".webp")


class QuizImportRunner:
    """
    High-level runner wiring one shared instance of every pipeline service.

    Provides:
    - Settings from the environment, overlaid with stored AI configuration
    - Parsing of pasted text, documents, PDFs and images
    - Batch import into the record store with progress logging
    - Monitor reports and JSON export of parsed questions
    """

    def __init__(
        self,
        env_path: Optional[Path] = None,
        data_dir: Optional[Path] = None,
        verbose: bool = True,
        settings: Optional[Settings] = None,
        llm_client: Optional[LLMClient] = None,
        ocr_engine: Optional[OCREngine] = None,
        store: Optional[RecordStore] = None,
    ):
        """
        Initialize the runner.

        Args:
            env_path: Path to environment file with API keys.
            data_dir: Directory for persisted monitor, budget and config state.
            verbose: Whether to print progress updates.
            settings: Explicit settings; read from the environment when omitted.
            llm_client: Pre-built LLM client; built from settings when AI is
                enabled and none is given.
            ocr_engine: OCR collaborator for images and scanned PDFs.
            store: Record store receiving imported questions.
        """
        self.verbose = verbose
        settings = settings or Settings.from_env(env_path)
        if data_dir is not None:
            settings = settings.with_changes(data_dir=Path(data_dir))

        self.storage = LocalStorage(settings.data_dir)
        self.settings = load_ai_config(self.storage, settings)
        self.store = store or RecordStore()

        self.monitor = PerformanceMonitor(self.storage)
        self.cost_optimizer = CostOptimizer(
            self.storage,
            budget=CostBudget(
                daily=self.settings.daily_budget,
                monthly=self.settings.monthly_budget,
                per_request=self.settings.per_request_budget,
                alert_threshold=self.settings.budget_alert_threshold,
            ),
        )
        self.adaptive = AdaptiveStrategy(self.monitor, self.storage)
        self.cache = ResultCache()

        self.ai_parser = None
        if llm_client is None and self.settings.ai_available:
            llm_client = LLMClient(self.settings)
        if llm_client is not None:
            self.ai_parser = AIParser(llm_client, self.settings, self.cost_optimizer)

        self.ocr_parser = OCRParser(
            engine=ocr_engine,
            text_parsers=build_local_parsers(),
            ai_parser=self.ai_parser,
        )
        self.dispatcher = SmartDispatcher(
            ai_parser=self.ai_parser,
            ocr_parser=self.ocr_parser,
            monitor=self.monitor,
            cost_optimizer=self.cost_optimizer,
            adaptive=self.adaptive,
            cache=self.cache,
        )
        self.importer = BatchImportManager(
            self.store,
            batch_size=self.settings.import_batch_size,
            use_worker=self.settings.use_worker,
        )
        self.extractor = DocumentExtractor()

        adjustments = self.adaptive.adapt()
        if adjustments:
            self._log(f"Applied {len(adjustments)} strategy adjustment(s) from history")

    def _log(self, message: str):
        """Print message if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime("%H:%M:%S")
            print(f"[{timestamp}] {message}")

    def run(self, text_or_path: str) -> DispatchOutcome:
        """
        Parse pasted text, or the file it names.

        Args:
            text_or_path: Raw question text or path to a document.

        Returns:
            DispatchOutcome with parsed questions and validation reports.
        """
        # Check if the argument is a file path (only if it's short enough to be one)
        if len(text_or_path) < 500 and "\n" not in text_or_path:
            path = Path(text_or_path)
            if path.is_file():
                return self.run_from_file(path)

        return self._dispatch(ParseInput.text(text_or_path))

    def run_from_file(self, path: Path) -> DispatchOutcome:
        """
        Parse a document, PDF or image file.

        Args:
            path: Path to the input file.

        Returns:
            DispatchOutcome with parsed questions and validation reports.
        """
        path = Path(path)
        suffix = path.suffix.lower()
        self._log(f"Loading questions from: {path}")

        if suffix in IMAGE_SUFFIXES:
            return self._dispatch(ParseInput(InputType.IMAGE, path.read_bytes(), path.name))

        document = self.extractor.extract(path)
        for diagnostic in document.diagnostics:
            self._log(f"  {diagnostic}")

        if suffix == ".pdf" and not document.ok:
            self._log("PDF has no text layer, falling back to OCR")
            return self._dispatch(ParseInput(InputType.PDF, path.read_bytes(), path.name))

        return self._dispatch(ParseInput(InputType.TEXT, document.text, path.name))

    def _dispatch(self, parse_input: ParseInput) -> DispatchOutcome:
        self._log(f"Parsing {parse_input.type.value} input ({parse_input.size} chars/bytes)")
        outcome = self.dispatcher.parse(parse_input)

        if outcome.skipped:
            self._log(f"Skipped strategies: {', '.join(outcome.skipped)}")
        for warning in outcome.warnings:
            self._log(f"Warning: {warning}")

        if outcome.success:
            meta = outcome.result.metadata
            self._log(
                f"Parsed {len(outcome.questions)} question(s) with {meta.strategy} "
                f"(confidence {outcome.result.confidence:.2f}, {meta.processing_time:.0f}ms)"
            )
            if outcome.recovered:
                self._log("Result came from error recovery; please review carefully")
            for report in outcome.invalid_reports:
                self._log(f"  Needs fixing: {report.question.title[:40]!r}: {', '.join(report.errors)}")
        else:
            self._log(f"Parsing failed: {'; '.join(outcome.result.errors[:5])}")

        return outcome

    def import_into(
        self,
        result: Union[DispatchOutcome, Sequence[ImportQuestionData]],
        chapter_id: str,
        bank_id: Optional[str] = None,
    ) -> ImportResult:
        """
        Persist parsed questions into a chapter.

        Args:
            result: A dispatch outcome or the questions to import.
            chapter_id: Target chapter.
            bank_id: Optional question bank of the chapter.

        Returns:
            ImportResult with counts and per-item errors.
        """
        questions = result.questions if isinstance(result, DispatchOutcome) else result
        self._log(f"Importing {len(questions)} question(s) into chapter {chapter_id}")
        import_result = self.importer.import_questions_sync(
            questions, chapter_id, on_event=self._on_import_event, bank_id=bank_id
        )
        for error in import_result.errors:
            self._log(f"  {error}")
        return import_result

    def _on_import_event(self, event: ImportEvent) -> None:
        if isinstance(event, ImportProgress):
            self._log(f"  Progress: {event.progress}% ({event.processed}/{event.total})")
        elif isinstance(event, ImportComplete):
            result = event.result
            self._log(
                f"Import complete: {result.success_count} imported, "
                f"{result.failed_count} failed"
            )
        elif isinstance(event, ImportFailed):
            self._log(f"Import error: {event.message}")

    def save_questions(self, outcome: DispatchOutcome, output_path: Path) -> Path:
        """Export parsed questions and their validation problems as JSON."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "strategy": outcome.result.metadata.strategy,
            "confidence": outcome.result.confidence,
            "detected_format": outcome.result.metadata.detected_format,
            "questions": [
                {**report.question.to_dict(), "errors": list(report.errors), "warnings": list(report.warnings)}
                for report in outcome.reports
            ],
            "errors": list(outcome.result.errors),
        }
        output_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        self._log(f"  Saved: {output_path.name}")
        return output_path

    def get_report(self, period_hours: float = 24) -> str:
        """Get formatted summary of recent parse performance and spend."""
        report = self.monitor.generate_report(period_hours)
        summary = report.summary
        cost = self.cost_optimizer.get_cost_stats()
        lines = [
            "PARSE PERFORMANCE REPORT",
            "=" * 50,
            f"Requests: {summary['total_requests']}",
            f"Success rate: {summary['success_rate']:.1f}%",
            f"Average time: {summary['average_processing_time']:.0f}ms",
            f"Average confidence: {summary['average_confidence']:.2f}",
            f"Questions parsed: {summary['total_questions_processed']}",
            f"AI cost today: {cost['tracker']['today']} cents "
            f"({cost['usage']['daily_percentage']:.1f}% of budget)",
            "",
            "By strategy:",
        ]
        for name, stats in sorted(report.by_strategy.items()):
            lines.append(
                f"  {name:<20} {stats.requests:>4} req  {stats.success_rate:5.1f}%  "
                f"{stats.average_time:7.0f}ms  {stats.total_cost:>4} cents"
            )
        if report.alerts:
            lines.append("")
            lines.append("Alerts:")
            lines.extend(f"  [{alert.type}] {alert.message}" for alert in report.alerts)
        return "\n".join(lines)

    def close(self) -> None:
        self.importer.destroy()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Parse quiz questions from text, documents or images"
    )
    parser.add_argument(
        "input",
        type=str,
        help="Question text or path to a file (txt, md, json, docx, doc, pdf, image)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Write parsed questions to this JSON file",
    )
    parser.add_argument(
        "--chapter",
        type=str,
        help="Import the parsed questions into this chapter",
    )
    parser.add_argument(
        "--bank",
        type=str,
        help="Question bank of the chapter",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Print the performance report after parsing",
    )
    parser.add_argument(
        "-e", "--env",
        type=Path,
        default=None,
        help="Path to environment file",
    )
    parser.add_argument(
        "-d", "--data-dir",
        type=Path,
        default=None,
        help="Directory for persisted monitor and budget state",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress output",
    )

    args = parser.parse_args()

    # Create runner
    runner = QuizImportRunner(
        env_path=args.env,
        data_dir=args.data_dir,
        verbose=not args.quiet,
    )

    try:
        outcome = runner.run(args.input)

        if args.output:
            runner.save_questions(outcome, args.output)

        if outcome.success and args.chapter:
            result = runner.import_into(outcome, args.chapter, bank_id=args.bank)
            print(f"Imported {result.success_count}/{result.total_count} question(s)")

        if args.report:
            print("\n" + "=" * 50)
            print(runner.get_report())
    finally:
        runner.close()

    if not outcome.success:
        print("No questions could be parsed:", file=sys.stderr)
        for error in outcome.result.errors[:10]:
            print(f"  - {error}", file=sys.stderr)
        sys.exit(1)

    for i, question in enumerate(outcome.questions, 1):
        print(question.to_standard_text(i))
        print()


if __name__ == "__main__":
    main()
