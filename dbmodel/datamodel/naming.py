"""Naming conventions for models, fields and relations.

Naming is a policy object so the normalizer can run with canonical names
(``PrismaNamingPolicy``) or with the raw database identifiers
(``PreservingNamingPolicy``).
"""

import re
from abc import ABC, abstractmethod
from typing import List, Sequence


IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "foot": "feet",
    "tooth": "teeth",
    "datum": "data",
    "criterion": "criteria",
}
IRREGULAR_SINGULARS = {plural: singular for singular, plural in IRREGULAR_PLURALS.items()}

UNCOUNTABLE = {
    "data", "metadata", "information", "equipment", "news", "series",
    "species", "sheep", "fish", "feedback", "media",
}

# Trailing words that mark a column as a key reference
KEY_SUFFIXES = {"id", "fk", "key", "uuid", "ref"}


def split_words(name: str) -> List[str]:
    """Split snake_case, kebab-case, camelCase or PascalCase into words."""
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", s)
    return [w for w in re.split(r"[^A-Za-z0-9]+", s) if w]


def to_pascal_case(words: Sequence[str]) -> str:
    name = "".join(w[:1].upper() + w[1:].lower() for w in words)
    if name and name[0].isdigit():
        name = "_" + name
    return name


def to_camel_case(words: Sequence[str]) -> str:
    if not words:
        return ""
    name = words[0].lower() + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])
    if name and name[0].isdigit():
        name = "_" + name
    return name


def _match_case(source: str, target: str) -> str:
    if source.isupper():
        return target.upper()
    if source[:1].isupper():
        return target[:1].upper() + target[1:]
    return target


def pluralize(word: str) -> str:
    """English plural of a single word."""
    lower = word.lower()
    if not lower or lower in UNCOUNTABLE or lower in IRREGULAR_SINGULARS:
        return word
    if lower in IRREGULAR_PLURALS:
        return _match_case(word, IRREGULAR_PLURALS[lower])
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return word + ("ES" if word.isupper() else "es")
    if re.search(r"[^aeiou]y$", lower):
        return word[:-1] + ("IES" if word.isupper() else "ies")
    return word + ("S" if word.isupper() else "s")


def singularize(word: str) -> str:
    """English singular of a single word."""
    lower = word.lower()
    if not lower or lower in UNCOUNTABLE or lower in IRREGULAR_PLURALS:
        return word
    if lower in IRREGULAR_SINGULARS:
        return _match_case(word, IRREGULAR_SINGULARS[lower])
    if lower.endswith("ies") and len(lower) > 4:
        return word[:-3] + ("Y" if word.isupper() else "y")
    if re.search(r"(sses|uses|xes|zzes|ches|shes)$", lower):
        return word[:-2]
    if re.search(r"(ss|us|is)$", lower):
        return word
    if lower.endswith("s") and len(lower) > 1:
        return word[:-1]
    return word


def pluralize_name(name: str) -> str:
    """Pluralize the last word of a compound identifier, keeping its casing."""
    words = split_words(name)
    if not words:
        return name
    last = words[-1]
    index = name.rfind(last)
    return name[:index] + pluralize(last) + name[index + len(last):]


class NamingPolicy(ABC):
    """Derives datamodel names from database identifiers."""

    @abstractmethod
    def model_name(self, table: str) -> str:
        """Model name for a table."""
        pass

    @abstractmethod
    def field_name(self, column: str) -> str:
        """Scalar field name for a column."""
        pass

    @abstractmethod
    def relation_field_name(self, columns: Sequence[str], target_model: str) -> str:
        """Name of the inline relation field replacing a foreign key."""
        pass

    @abstractmethod
    def back_reference_name(self, source_model: str, is_list: bool) -> str:
        """Name of the field on the referenced model pointing back."""
        pass

    def many_to_many_field_name(self, other_model: str) -> str:
        return self.back_reference_name(other_model, True)

    def disambiguated_back_reference_name(self, source_model: str, forward_field: str, is_list: bool) -> str:
        """Back-reference name when one model references another more than once."""
        base = self.back_reference_name(source_model, is_list)
        return base + "As" + forward_field[:1].upper() + forward_field[1:]

    def junction_field_name(self, junction_table: str) -> str:
        """Many-to-many field name when a model pair has several junctions."""
        return self.back_reference_name(self.model_name(junction_table), True)

    def relation_name(self, first_model: str, second_model: str) -> str:
        """Relation name for the only relation between two models."""
        a, b = sorted([first_model, second_model])
        return f"{a}To{b}"

    def disambiguated_relation_name(self, source_model: str, forward_field: str, target_model: str) -> str:
        """Relation name when two models share more than one relation."""
        return f"{source_model}{forward_field[:1].upper()}{forward_field[1:]}To{target_model}"

    def junction_relation_name(self, junction_table: str) -> str:
        return self.model_name(junction_table)


class PrismaNamingPolicy(NamingPolicy):
    """PascalCase singular models, camelCase fields, plural list back-references."""

    def model_name(self, table: str) -> str:
        words = split_words(table)
        if not words:
            return table
        words[-1] = singularize(words[-1])
        return to_pascal_case(words)

    def field_name(self, column: str) -> str:
        return to_camel_case(split_words(column)) or column

    def relation_field_name(self, columns: Sequence[str], target_model: str) -> str:
        words: List[str] = []
        for column in columns:
            column_words = split_words(column)
            if len(column_words) > 1 and column_words[-1].lower() in KEY_SUFFIXES:
                column_words = column_words[:-1]
            elif len(column_words) == 1 and column_words[0].lower() in KEY_SUFFIXES:
                column_words = []
            for w in column_words:
                if w.lower() not in (x.lower() for x in words):
                    words.append(w)
        if not words:
            return self.back_reference_name(target_model, False)
        return to_camel_case(words)

    def back_reference_name(self, source_model: str, is_list: bool) -> str:
        name = to_camel_case(split_words(source_model)) or source_model
        return pluralize_name(name) if is_list else name


class PreservingNamingPolicy(NamingPolicy):
    """Keeps database identifiers verbatim; used for the unnormalized datamodel."""

    def model_name(self, table: str) -> str:
        return table

    def field_name(self, column: str) -> str:
        return column

    def relation_field_name(self, columns: Sequence[str], target_model: str) -> str:
        return "_".join(columns)

    def back_reference_name(self, source_model: str, is_list: bool) -> str:
        return source_model

    def disambiguated_back_reference_name(self, source_model: str, forward_field: str, is_list: bool) -> str:
        return f"{source_model}_{forward_field}"

    def junction_field_name(self, junction_table: str) -> str:
        return junction_table

    def relation_name(self, first_model: str, second_model: str) -> str:
        a, b = sorted([first_model, second_model])
        return f"{a}_to_{b}"

    def disambiguated_relation_name(self, source_model: str, forward_field: str, target_model: str) -> str:
        return f"{source_model}_{forward_field}_to_{target_model}"

    def junction_relation_name(self, junction_table: str) -> str:
        return junction_table


def get_naming_policy(name: str) -> NamingPolicy:
    """Return a naming policy by its settings name."""
    if name == "preserve":
        return PreservingNamingPolicy()
    if name == "prisma":
        return PrismaNamingPolicy()
    raise ValueError(f"Unknown naming policy: {name}")
