"""Tests du cache disque des images de roue."""

import pytest

from natal_backend.domain.errors import ConfigurationError
from natal_backend.infra.image_cache import ImageCache


@pytest.fixture
def images(tmp_path) -> ImageCache:
    return ImageCache(tmp_path / "wheel")


def test_save_and_load(images):
    path = images.save_image(b"<svg/>", "abc123", "svg")
    assert path.name == "abc123.svg"
    assert images.load_image("abc123", "svg") == b"<svg/>"
    assert images.image_exists("abc123", "svg")
    assert not images.image_exists("abc123", "png")


def test_save_replaces(images):
    images.save_image(b"one", "abc", "png")
    images.save_image(b"two", "abc", "png")
    assert images.load_image("abc", "png") == b"two"
    assert images.list_images() == ["abc.png"]


def test_missing_image(images):
    with pytest.raises(KeyError):
        images.load_image("nope")
    assert images.delete_image("nope") is False
    assert images.list_images() == []
    assert images.cache_size() == 0


def test_delete_size_and_clear(images):
    images.save_image(b"12345", "a", "svg")
    images.save_image(b"123", "b", "png")
    assert images.cache_size() == 8
    assert images.list_images() == ["a.svg", "b.png"]
    assert images.delete_image("a", "svg") is True
    assert images.clear() == 1
    assert images.list_images() == []


def test_unknown_format(images):
    with pytest.raises(ConfigurationError) as exc:
        images.save_image(b"GIF89a", "abc", "gif")
    assert exc.value.setting == "image format"


@pytest.mark.parametrize("file_id", ["../escape", "", "a/b", "a.b"])
def test_invalid_file_id(images, file_id):
    with pytest.raises(ValueError):
        images.save_image(b"x", file_id)
