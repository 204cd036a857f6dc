"""Tests for twx.web.dependencies - Shared dependency providers."""

from uuid import uuid4

import pytest

from twx.errors import NotFoundError
from twx.web.dependencies import get_element_id


def test_get_element_id_parses_uuid():
    element_id = uuid4()
    assert get_element_id(str(element_id)) == element_id


def test_malformed_element_id_is_not_found():
    with pytest.raises(NotFoundError):
        get_element_id("not-a-uuid")
