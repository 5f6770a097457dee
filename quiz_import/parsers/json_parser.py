"""Parser for question lists pasted or exported as JSON."""

import json

from ..models import ImportQuestionData, ParseInput, ParseResult
from .base import QuestionParser


class JsonQuestionParser(QuestionParser):
    """
    Reads a JSON array of question objects, or an object with a `questions` array.

    Integer answers are 0-based; numeric-string answers are 1-based.
    """

    name = "json"
    strategy = "json"
    answer_base = 1

    def supports(self, parse_input: ParseInput) -> bool:
        if not super().supports(parse_input):
            return False
        return parse_input.text_content.lstrip()[:1] in ("[", "{")

    def _parse(self, parse_input: ParseInput) -> ParseResult:
        try:
            data = json.loads(parse_input.text_content)
        except json.JSONDecodeError as e:
            return self._failure([f"JSON格式错误: {e}"])

        if isinstance(data, dict):
            data = data.get("questions", [data])
        if not isinstance(data, list):
            return self._failure(["JSON内容不是题目列表"])

        questions = []
        errors = []
        for i, item in enumerate(data, 1):
            if not isinstance(item, dict):
                errors.append(f"第{i}项不是题目对象")
                continue
            questions.append(ImportQuestionData.from_dict(item))

        return self._result(questions, 0.95, errors)
