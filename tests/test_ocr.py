"""Tests for OCR post-processing and the OCR-backed parser."""

from conftest import STANDARD_TEXT, FakeOCREngine
from quiz_import.models import InputType, ParseInput
from quiz_import.parsers import OCRParser, post_process_ocr
from quiz_import.pipeline import build_local_parsers

IMAGE = ParseInput(InputType.IMAGE, b"\x89PNG fake image bytes", "scan.png")


def test_post_process_fixes_confusions_between_letters():
    assert post_process_ocr("He1lo w0rld, 5ome ca5e") == "Hello world, 5ome case"


def test_post_process_keeps_numbering():
    assert post_process_ocr("1. 10 + 5 = ?") == "1. 10 + 5 = ?"


def test_post_process_joins_spaced_keywords():
    assert post_process_ocr("答 案：A\n解  析：因为") == "答案：A\n解析：因为"


def test_ocr_parser_hands_text_to_local_strategies():
    engine = FakeOCREngine(STANDARD_TEXT, confidence=90)
    parser = OCRParser(engine, text_parsers=build_local_parsers())
    result = parser.parse(IMAGE)

    assert result.success
    assert result.questions[0].correct_answer == 1
    assert result.metadata.ocr_confidence == 90
    assert result.metadata.detected_format == "rule"
    assert result.confidence == 0.95 * 0.9
    assert result.metadata.strategy == "ocr"


def test_low_confidence_goes_to_ai(make_ai_parser):
    ai_parser, fake = make_ai_parser()
    engine = FakeOCREngine(STANDARD_TEXT, confidence=40)
    parser = OCRParser(engine, text_parsers=build_local_parsers(), ai_parser=ai_parser)
    result = parser.parse(IMAGE)

    assert result.success
    assert result.metadata.detected_format == "ai"
    assert result.metadata.cost > 0
    assert "came from OCR" in fake.user_prompt()


def test_low_confidence_without_ai_uses_local_strategies():
    engine = FakeOCREngine(STANDARD_TEXT, confidence=40)
    result = OCRParser(engine, text_parsers=build_local_parsers()).parse(IMAGE)
    assert result.success
    assert result.confidence == 0.95 * 0.4


def test_missing_engine():
    assert OCRParser().parse(IMAGE).errors == ("未配置OCR引擎",)


def test_empty_recognition():
    result = OCRParser(FakeOCREngine("   ", 80)).parse(IMAGE)
    assert result.errors == ("OCR未识别到文字",)
    assert result.metadata.ocr_confidence == 80


def test_ocr_parser_rejects_text_input():
    assert not OCRParser(FakeOCREngine("x")).supports(ParseInput.text(STANDARD_TEXT))
