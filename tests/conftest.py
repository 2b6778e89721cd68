"""Pytest configuration and shared fixtures for Nilo tests."""

from typing import Dict, Optional, Tuple

import pytest

from nilo import NativeRegistry, NiloEngine
from nilo.errors import AssetError

CHAR_WIDTH = 0.5


class FakeMeasurer:
    """Deterministic text measurement: half an em per character."""

    def __init__(self):
        self.calls = 0

    def measure(self, text: str, font_size: float, font: Optional[str] = None) -> Tuple[float, float]:
        self.calls += 1
        lines = text.split("\n")
        width = max(len(line) for line in lines) * font_size * CHAR_WIDTH
        return width, font_size * len(lines)


class FakeImageSizer:
    """Image sizes from a dict; unknown paths are missing assets."""

    def __init__(self, sizes: Optional[Dict[str, Tuple[float, float]]] = None):
        self.sizes = dict(sizes or {})

    def size(self, path: str) -> Tuple[float, float]:
        if path not in self.sizes:
            raise AssetError(f"Image asset not found: {path}")
        return self.sizes[path]


@pytest.fixture
def measurer():
    """Fake text measurer."""
    return FakeMeasurer()


@pytest.fixture
def image_sizer():
    """Fake image sizer knowing a single 40x30 logo."""
    return FakeImageSizer({"logo.png": (40.0, 30.0)})


@pytest.fixture
def registry():
    """Empty native function registry."""
    return NativeRegistry()


@pytest.fixture
def make_engine(measurer, image_sizer, registry):
    """Factory building engines with fake measurement collaborators."""

    def factory(source: str, state=None, **options) -> NiloEngine:
        options.setdefault("viewport_width", 400)
        options.setdefault("viewport_height", 300)
        return NiloEngine(
            source,
            state=state,
            registry=registry,
            measurer=measurer,
            image_sizer=image_sizer,
            **options,
        )

    return factory


@pytest.fixture
def counter_source():
    """Single timeline with a counter and an increment button."""
    return """
    flow { start: Home }

    timeline Home {
        Text("Count: {}", state.count)
        Button(id: increment, label: "+")

        when user.click(increment) {
            set state.count = state.count + 1
        }
    }
    """


@pytest.fixture
def login_source():
    """Two timelines with a one-way transition."""
    return """
    flow {
        start: Login
        Login -> Dashboard
    }

    timeline Login {
        Text("Please sign in")
        Button(id: submit, label: "Sign in")

        when user.click(submit) {
            set state.signed_in = true
            navigate_to(Dashboard)
        }
    }

    timeline Dashboard {
        Text("Welcome")
        Button(id: back, label: "Back")

        when user.click(back) {
            navigate_to(Login)
        }
    }
    """


@pytest.fixture
def list_source():
    """Timeline rendering a list of strings with foreach."""
    return """
    flow { start: Items }

    timeline Items {
        Text("Items: {}", state.items.len())
        foreach item in state.items {
            Text("{}", item)
        }
    }
    """


@pytest.fixture
def card_component_source():
    """Component with typed, defaulted and optional parameters."""
    return """
    component Card(title: String, subtitle: String = "none", badge: Number?,
                   style: { padding: 4, background: "#eeeeee" }) {
        VStack {
            Text(title)
            Text("Sub: {}", subtitle)
        }
    }

    flow { start: Home }

    timeline Home {
        Card("Hello")
        Card(title: "Named", subtitle: "given", style: { background: "red" })
    }
    """
