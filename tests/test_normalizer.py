import pytest

from plancoach.domain.errors import ValidationError
from plancoach.domain.topics import get_topic
from plancoach.services.normalizer import detect_help_request, normalize_request


PRODUCTS = get_topic("products")
DESCRIPTION = get_topic("business-description")


def test_single_message_shape():
    turn = normalize_request(PRODUCTS, {"message": "  We bake sourdough.  "})
    assert turn.message_text == "We bake sourdough."
    assert turn.is_help_request is False
    assert turn.is_direct_update is False


def test_messages_array_uses_last_user_entry():
    turn = normalize_request(
        PRODUCTS,
        {
            "messages": [
                {"role": "user", "content": "first"},
                {"role": "assistant", "content": "ok"},
                {"role": "user", "content": "second"},
                {"role": "assistant", "content": "noted"},
            ]
        },
    )
    assert turn.message_text == "second"


def test_system_marker_flags_help():
    turn = normalize_request(
        PRODUCTS,
        {"messages": [{"role": "system", "content": "The user needs help with this section"}, {"role": "user", "content": "hi"}]},
    )
    assert turn.is_help_request is True


def test_explicit_flags_and_finalizing():
    turn = normalize_request(PRODUCTS, {"message": "Done", "isHelp": True, "finalizing": True})
    assert turn.is_help_request is True
    assert turn.finalizing is True


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Can you help me with this?", True),
        ("Could you give an example?", True),
        ("I'm not sure what to write", True),
        ("I need some guidance", True),
        ("We sell helpful kitchen gadgets", False),
        ("Our exemplary service", False),
        ("", False),
    ],
)
def test_help_keywords_match_whole_words(text, expected):
    assert detect_help_request(text) is expected


def test_sectioned_topic_requires_section_id():
    with pytest.raises(ValidationError):
        normalize_request(DESCRIPTION, {"message": "We serve bakeries"})
    with pytest.raises(ValidationError):
        normalize_request(DESCRIPTION, {"message": "We serve bakeries", "sectionId": "undefined"})


def test_content_with_section_id():
    turn = normalize_request(DESCRIPTION, {"content": "Bakeries", "sectionId": "target-market"})
    assert turn.message_text == "Bakeries"
    assert turn.section_id == "target-market"


def test_direct_section_update():
    turn = normalize_request(DESCRIPTION, {"businessDescription.target-market": "Independent bakeries"})
    assert turn.is_direct_update is True
    assert turn.direct_updates == {"targetMarket": "Independent bakeries"}


def test_direct_update_rejects_invalid_section_keys():
    with pytest.raises(ValidationError):
        normalize_request(DESCRIPTION, {"businessDescriptionData": {"undefined": "x"}})


def test_direct_data_update_keeps_known_fields_only():
    turn = normalize_request(PRODUCTS, {"productsData": {"pricingStrategy": "Premium", "bogus": 1}})
    assert turn.direct_updates == {"pricingStrategy": "Premium"}


@pytest.mark.parametrize("body", [{}, {"message": "   "}, {"messages": [{"role": "assistant", "content": "hi"}]}, [], "text"])
def test_unusable_bodies_are_rejected(body):
    with pytest.raises(ValidationError):
        normalize_request(PRODUCTS, body)
