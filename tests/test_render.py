from quotebot.quotes.models import Quote
from quotebot.render.registry import (
    Embed,
    RendererRegistry,
    default_registry,
    render_default,
)

WEBSITE = "https://quotes.example.org/"


def _quote(**kwargs):
    fields = {
        "id": "gras",
        "value": "Le gras, c'est la vie.",
        "character": "Karadoc",
        "context": "Livre I, Le Gras",
    }
    fields.update(kwargs)
    return Quote(**fields)


class TestBuiltinRenderers:
    def test_kaamelott_without_image_shows_logo(self):
        embed = default_registry(WEBSITE).render(_quote(collection="kaamelott"))

        assert embed.title == "Livre I, Le Gras"
        assert embed.description == "Le gras, c'est la vie."
        assert embed.image is None
        assert embed.thumbnail == "https://quotes.example.org/images/kaamelott.png"
        assert embed.fields[0].value == "Karadoc"

    def test_kaamelott_with_image(self):
        embed = default_registry(WEBSITE).render(
            _quote(collection="kaamelott", image="https://img.example.org/gras.gif")
        )

        assert embed.image == "https://img.example.org/gras.gif"
        assert embed.thumbnail is None

    def test_oss117(self):
        embed = default_registry(WEBSITE).render(_quote(character="Hubert"), "oss117")

        assert embed.thumbnail == "https://quotes.example.org/images/oss117.png"

    def test_abitbol_uses_quote_image_as_thumbnail(self):
        embed = default_registry(WEBSITE).render(
            _quote(collection="abitbol", image="https://img.example.org/georges.png")
        )

        assert embed.thumbnail == "https://img.example.org/georges.png"
        assert embed.fields == []

    def test_unknown_collection_uses_default(self):
        embed = default_registry(WEBSITE).render(_quote(collection="inconnu", image="i.png"))

        assert embed == render_default(_quote(image="i.png"), WEBSITE)

    def test_default_without_character(self):
        assert render_default(_quote(character=""), WEBSITE).fields == []


class TestRegistry:
    def test_register_new_collection(self):
        registry = RendererRegistry(WEBSITE)
        registry.register("mycollection", lambda quote, website: Embed(title=website))

        embed = registry.render(_quote(collection="mycollection"))

        assert embed.title == "https://quotes.example.org"
        assert registry.tags() == ["mycollection"]

    def test_builtin_tags(self):
        assert default_registry(WEBSITE).tags() == ["abitbol", "kaamelott", "oss117"]
