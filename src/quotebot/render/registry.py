"""
Quote Renderer Registry

Chat platforms display a quote as an embed (title, description, image,
fields). Each collection has its own layout; this registry maps a
collection tag to the renderer producing that layout, so supporting a new
collection is a single `register` call.
"""

from __future__ import annotations

from threading import RLock
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from ..config import settings
from ..quotes.models import Quote


# ---------------------------------------------------------------------
# Embed Model
# ---------------------------------------------------------------------

class EmbedField(BaseModel):
    name: str
    value: str

    model_config = ConfigDict(extra="forbid")


class Embed(BaseModel):
    """
    Platform-neutral rich rendering of a quote.
    """
    title: str = ""
    description: str = ""
    url: Optional[str] = None
    image: Optional[str] = None
    thumbnail: Optional[str] = None
    fields: List[EmbedField] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


Renderer = Callable[[Quote, str], Embed]


# ---------------------------------------------------------------------
# Built-in Renderers
# ---------------------------------------------------------------------

def _character_fields(quote: Quote) -> List[EmbedField]:
    if not quote.character:
        return []
    return [EmbedField(name="Personnage", value=quote.character)]


def render_kaamelott(quote: Quote, website: str) -> Embed:
    """
    Full-size image when the quote has one, the show logo otherwise.
    """
    return Embed(
        title=quote.context,
        description=quote.value,
        url=quote.url,
        image=quote.image or None,
        thumbnail=None if quote.image else f"{website}/images/kaamelott.png",
        fields=_character_fields(quote),
    )


def render_oss117(quote: Quote, website: str) -> Embed:
    return Embed(
        title=quote.context,
        description=quote.value,
        thumbnail=f"{website}/images/oss117.png",
        fields=_character_fields(quote),
    )


def render_abitbol(quote: Quote, website: str) -> Embed:
    return Embed(
        title=quote.context,
        description=quote.value,
        url=quote.url,
        thumbnail=quote.image,
    )


def render_default(quote: Quote, website: str) -> Embed:
    return Embed(
        title=quote.context,
        description=quote.value,
        url=quote.url,
        image=quote.image,
        fields=_character_fields(quote),
    )


# ---------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------

class RendererRegistry:
    """
    Collection tag -> renderer mapping with a fallback renderer.
    """

    def __init__(
        self,
        website: Optional[str] = None,
        default: Renderer = render_default,
    ) -> None:
        self._website = (website or str(settings.website_url)).rstrip("/")
        self._default = default
        self._renderers: Dict[str, Renderer] = {}
        self._lock = RLock()

    def register(self, tag: str, renderer: Renderer) -> None:
        """
        Register (or replace) the renderer of collection `tag`.
        """
        with self._lock:
            self._renderers[tag] = renderer

    def get(self, tag: Optional[str]) -> Renderer:
        with self._lock:
            return self._renderers.get(tag or "", self._default)

    def render(self, quote: Quote, tag: Optional[str] = None) -> Embed:
        """
        Render `quote` with the renderer of `tag`, defaulting to the quote's
        own collection.
        """
        renderer = self.get(tag or quote.collection)
        return renderer(quote, self._website)

    def tags(self) -> List[str]:
        with self._lock:
            return sorted(self._renderers)


def default_registry(website: Optional[str] = None) -> RendererRegistry:
    """
    Registry preloaded with the built-in collection layouts.
    """
    registry = RendererRegistry(website)
    registry.register("kaamelott", render_kaamelott)
    registry.register("oss117", render_oss117)
    registry.register("abitbol", render_abitbol)
    return registry
