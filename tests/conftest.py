"""Shared fixtures: fake provider client, fake OCR engine, clocks and sample texts."""

from datetime import datetime
from types import SimpleNamespace

import pytest

from quiz_import.ai import LLMClient
from quiz_import.config import Settings
from quiz_import.monitoring import PerformanceMonitor
from quiz_import.optimization import CostOptimizer
from quiz_import.parsers import AIParser, OCRText
from quiz_import.storage import LocalStorage

STANDARD_TEXT = "1. 2+2=?\nA. 3\nB. 4\n答案：B\n解析：基础算术"

TWO_QUESTIONS = """1. 中国的首都是哪里？
A. 上海
B. 北京
C. 广州
D. 深圳
答案：B
解析：北京是中国的首都。

2. 1+1等于几？
A. 1
B. 2
C. 3
D. 4
答案：B"""

NOISE_TEXT = "asdkj ;;; 8238"

AI_QUESTIONS_JSON = (
    '[{"title": "2+2=?", "options": ["3", "4"], "correctAnswer": 1, '
    '"explanation": "基础算术", "difficulty": "easy"}]'
)

FAKE_TOKENS = 1200


class FakeChatClient:
    """Stands in for the openai client; replays canned responses in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=item))],
            usage=SimpleNamespace(total_tokens=FAKE_TOKENS),
            model="fake-model",
        )

    def user_prompt(self, index=0):
        return self.calls[index]["messages"][1]["content"]


class FakeOCREngine:
    def __init__(self, text, confidence=95.0):
        self.text = text
        self.confidence = confidence
        self.calls = 0

    def recognize(self, data):
        self.calls += 1
        return OCRText(text=self.text, confidence=self.confidence)


class MutableClock:
    """Epoch-seconds clock that tests can move forward."""

    def __init__(self, start=1_790_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def storage():
    return LocalStorage()


@pytest.fixture
def ai_settings():
    return Settings(
        ai_provider="siliconflow",
        ai_model="Qwen/Qwen2.5-72B-Instruct",
        ai_enabled=True,
        api_key="test-key",
    )


@pytest.fixture
def fixed_now():
    return lambda: datetime(2026, 10, 17, 12, 0)


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def monitor(storage, clock):
    return PerformanceMonitor(storage, clock=clock)


@pytest.fixture
def cost_optimizer(storage, fixed_now):
    return CostOptimizer(storage, clock=fixed_now)


@pytest.fixture
def make_ai_parser(ai_settings):
    """Build an AIParser backed by a FakeChatClient; returns (parser, fake)."""

    def factory(*responses, cost_optimizer=None):
        fake = FakeChatClient(responses or [AI_QUESTIONS_JSON])
        client = LLMClient(ai_settings, client=fake)
        return AIParser(client, ai_settings, cost_optimizer=cost_optimizer), fake

    return factory
