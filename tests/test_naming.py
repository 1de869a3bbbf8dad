"""Tests for naming policies."""

import pytest

from dbmodel.datamodel.naming import (
    PreservingNamingPolicy,
    PrismaNamingPolicy,
    get_naming_policy,
    pluralize,
    pluralize_name,
    singularize,
    split_words,
)


class TestWords:
    """Test word splitting and inflection."""

    @pytest.mark.parametrize("name,words", [
        ("user_tag", ["user", "tag"]),
        ("UserTag", ["User", "Tag"]),
        ("createdAt", ["created", "At"]),
        ("HTTPRequest", ["HTTP", "Request"]),
        ("order-line", ["order", "line"]),
    ])
    def test_split_words(self, name, words):
        assert split_words(name) == words

    @pytest.mark.parametrize("singular,plural", [
        ("post", "posts"),
        ("category", "categories"),
        ("box", "boxes"),
        ("address", "addresses"),
        ("person", "people"),
        ("day", "days"),
    ])
    def test_pluralize_and_singularize(self, singular, plural):
        assert pluralize(singular) == plural
        assert singularize(plural) == singular

    def test_uncountable(self):
        assert pluralize("metadata") == "metadata"
        assert singularize("news") == "news"

    def test_singular_words_left_alone(self):
        assert singularize("status") == "status"
        assert singularize("address") == "address"

    def test_pluralize_name_keeps_casing(self):
        assert pluralize_name("orderLine") == "orderLines"
        assert pluralize_name("userCategory") == "userCategories"


class TestPrismaNamingPolicy:
    """Test canonical names."""

    def test_model_names(self):
        naming = PrismaNamingPolicy()
        assert naming.model_name("users") == "User"
        assert naming.model_name("order_lines") == "OrderLine"
        assert naming.model_name("user") == "User"
        assert naming.model_name("2fa_codes") == "_2faCode"

    def test_field_names(self):
        naming = PrismaNamingPolicy()
        assert naming.field_name("created_at") == "createdAt"
        assert naming.field_name("id") == "id"
        assert naming.field_name("EMAIL") == "email"

    def test_relation_field_names(self):
        naming = PrismaNamingPolicy()
        assert naming.relation_field_name(["author_id"], "User") == "author"
        assert naming.relation_field_name(["manager_fk"], "Employee") == "manager"
        assert naming.relation_field_name(["order_id", "order_region"], "Order") == "orderRegion"
        assert naming.relation_field_name(["id"], "User") == "user"

    def test_back_references(self):
        naming = PrismaNamingPolicy()
        assert naming.back_reference_name("Post", True) == "posts"
        assert naming.back_reference_name("OrderLine", True) == "orderLines"
        assert naming.back_reference_name("Profile", False) == "profile"
        assert naming.disambiguated_back_reference_name("Message", "sender", True) == "messagesAsSender"

    def test_relation_names(self):
        naming = PrismaNamingPolicy()
        assert naming.relation_name("User", "Post") == "PostToUser"
        assert naming.disambiguated_relation_name("Message", "sender", "User") == "MessageSenderToUser"
        assert naming.junction_relation_name("user_tags") == "UserTag"
        assert naming.junction_field_name("user_tags") == "userTags"


class TestPreservingNamingPolicy:
    """Test names that mirror the database."""

    def test_identifiers_kept(self):
        naming = PreservingNamingPolicy()
        assert naming.model_name("user_tags") == "user_tags"
        assert naming.field_name("created_at") == "created_at"
        assert naming.relation_field_name(["author_id"], "user") == "author_id"
        assert naming.back_reference_name("post", True) == "post"
        assert naming.relation_name("user", "post") == "post_to_user"

    def test_disambiguated_names_joined_with_underscores(self):
        naming = PreservingNamingPolicy()
        assert naming.disambiguated_back_reference_name("person", "manager_id", True) == "person_manager_id"
        assert naming.disambiguated_relation_name("message", "sender_id", "user") == "message_sender_id_to_user"
        assert naming.junction_field_name("favorite_tag") == "favorite_tag"


class TestGetNamingPolicy:

    def test_known_policies(self):
        assert isinstance(get_naming_policy("prisma"), PrismaNamingPolicy)
        assert isinstance(get_naming_policy("preserve"), PreservingNamingPolicy)

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            get_naming_policy("rails")
