"""Parses schema-description text into a datamodel.

The parser accepts the text produced by ``DatamodelRenderer`` and the
hand-written variations of it: relation fields may omit
``@relation(name: ...)`` as long as each unnamed field has exactly one
unnamed counterpart on the other model.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from dbmodel.database.models import Cardinality
from dbmodel.datamodel.models import (
    Datamodel,
    Field,
    FieldKind,
    Model,
    ModelRelation,
    RelationEndpoint,
    RelationLink,
)
from dbmodel.errors import SchemaParseError

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"""
    (?P<comment>\#[^\n]*)
  | (?P<newline>\n)
  | (?P<space>[ \t\r]+)
  | (?P<string>"(?:[^"\\\n]|\\.)*")
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<punct>[{}()\[\]:,!@])
""", re.VERBOSE)


@dataclass
class Token:
    kind: str
    value: Any
    line: int


@dataclass
class _ParsedField:
    name: str
    type: str
    is_list: bool
    is_required: bool
    directives: Dict[str, Dict[str, Any]]
    line: int
    relation_name: Optional[str] = None


@dataclass
class _ParsedModel:
    name: str
    directives: Dict[str, Dict[str, Any]]
    line: int
    fields: List[_ParsedField] = field(default_factory=list)


def tokenize(text: str) -> List[Token]:
    tokens = []
    line = 1
    pos = 0
    while pos < len(text):
        match = TOKEN_PATTERN.match(text, pos)
        if match is None:
            raise SchemaParseError(f"Unexpected character {text[pos]!r}", line=line)
        kind = match.lastgroup
        value = match.group()
        if kind == "newline":
            line += 1
        elif kind == "string":
            tokens.append(Token(kind, re.sub(r"\\(.)", r"\1", value[1:-1]), line))
        elif kind in ("number", "name", "punct"):
            tokens.append(Token(kind, value, line))
        pos = match.end()
    return tokens


class SchemaParser:
    """Recursive-descent parser for the datamodel text format."""

    def __init__(self):
        self._tokens: List[Token] = []
        self._pos = 0

    def parse(self, text: str) -> Datamodel:
        """Parse text into a validated Datamodel.

        Raises:
            SchemaParseError: On syntax errors or unpaired relation fields
        """
        self._tokens = tokenize(text)
        self._pos = 0

        parsed: List[_ParsedModel] = []
        while not self._at_end():
            parsed.append(self._parse_type())

        names = [m.name for m in parsed]
        for m in parsed:
            if names.count(m.name) > 1:
                raise SchemaParseError(f"Duplicate type '{m.name}'", line=m.line)

        relations = self._pair_relations(parsed, set(names))
        models = tuple(self._build_model(m, set(names)) for m in parsed)
        logger.debug("Parsed %d models and %d relations", len(models), len(relations))
        return Datamodel.create(models, relations)

    # Token helpers

    def _at_end(self) -> bool:
        return self._pos >= len(self._tokens)

    def _peek(self) -> Optional[Token]:
        return None if self._at_end() else self._tokens[self._pos]

    def _next(self) -> Token:
        if self._at_end():
            last_line = self._tokens[-1].line if self._tokens else 1
            raise SchemaParseError("Unexpected end of input", line=last_line)
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _expect(self, kind: str, value: Optional[str] = None) -> Token:
        token = self._next()
        if token.kind != kind or (value is not None and token.value != value):
            expected = value or kind
            raise SchemaParseError(f"Expected {expected!r} but found {token.value!r}", line=token.line)
        return token

    def _accept(self, value: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == "punct" and token.value == value:
            self._pos += 1
            return True
        return False

    # Grammar

    def _parse_type(self) -> _ParsedModel:
        keyword = self._expect("name", "type")
        name = self._expect("name").value
        directives = self._parse_directives()
        model = _ParsedModel(name=name, directives=directives, line=keyword.line)
        self._expect("punct", "{")
        while not self._accept("}"):
            model.fields.append(self._parse_field())
        return model

    def _parse_field(self) -> _ParsedField:
        name_token = self._expect("name")
        self._expect("punct", ":")
        is_list = self._accept("[")
        type_name = self._expect("name").value
        if is_list:
            self._accept("!")
            self._expect("punct", "]")
        is_required = self._accept("!")
        directives = self._parse_directives()
        return _ParsedField(
            name=name_token.value,
            type=type_name,
            is_list=is_list,
            is_required=is_required and not is_list,
            directives=directives,
            line=name_token.line,
        )

    def _parse_directives(self) -> Dict[str, Dict[str, Any]]:
        directives: Dict[str, Dict[str, Any]] = {}
        while self._accept("@"):
            name = self._expect("name").value
            args: Dict[str, Any] = {}
            if self._accept("("):
                while True:
                    key = self._expect("name").value
                    self._expect("punct", ":")
                    args[key] = self._parse_value()
                    if not self._accept(","):
                        break
                self._expect("punct", ")")
            directives[name] = args
        return directives

    def _parse_value(self) -> Any:
        if self._accept("["):
            values = []
            if not self._accept("]"):
                while True:
                    values.append(self._parse_value())
                    if not self._accept(","):
                        break
                self._expect("punct", "]")
            return values
        token = self._next()
        if token.kind in ("string", "number", "name"):
            return token.value
        raise SchemaParseError(f"Unexpected {token.value!r} in directive arguments", line=token.line)

    # Semantics

    def _pair_relations(self, parsed: List[_ParsedModel], model_names: set) -> List[ModelRelation]:
        groups: Dict[str, List[Tuple[_ParsedModel, _ParsedField]]] = {}
        unnamed: List[Tuple[_ParsedModel, _ParsedField]] = []
        for model in parsed:
            for f in model.fields:
                if f.type not in model_names:
                    continue
                name = f.directives.get("relation", {}).get("name")
                if name is None:
                    unnamed.append((model, f))
                else:
                    f.relation_name = name
                    groups.setdefault(name, []).append((model, f))

        for index, (model, f) in enumerate(unnamed):
            if f.relation_name is not None:
                continue
            partner = None
            for other_model, other in unnamed[index + 1:]:
                if other.relation_name is None and other_model.name == f.type and other.type == model.name:
                    partner = (other_model, other)
                    break
            if partner is None:
                raise SchemaParseError(
                    f"Relation field '{model.name}.{f.name}' has no counterpart on '{f.type}'",
                    line=f.line,
                )
            a, b = sorted([model.name, f.type])
            name = f"{a}To{b}"
            suffix = 2
            while name in groups:
                name = f"{a}To{b}{suffix}"
                suffix += 1
            f.relation_name = name
            partner[1].relation_name = name
            groups[name] = [(model, f), partner]

        return [self._build_relation(name, members) for name, members in groups.items()]

    def _build_relation(self, name: str, members: List[Tuple[_ParsedModel, _ParsedField]]) -> ModelRelation:
        if len(members) != 2:
            line = members[0][1].line
            raise SchemaParseError(
                f"Relation '{name}' must have exactly two fields, found {len(members)}", line=line
            )
        (model_a, a), (model_b, b) = members
        if a.type != model_b.name or b.type != model_a.name:
            raise SchemaParseError(f"Relation '{name}' fields do not point at each other", line=b.line)

        args = {**a.directives.get("relation", {}), **b.directives.get("relation", {})}
        links = {
            f.directives.get("relation", {}).get("link") for f in (a, b)
        }
        if "TABLE" in links or (a.is_list and b.is_list):
            cardinality = Cardinality.MANY_TO_MANY
        elif a.is_list or b.is_list:
            cardinality = Cardinality.ONE_TO_MANY
        else:
            cardinality = Cardinality.ONE_TO_ONE

        # The side holding the key column comes first
        if cardinality is not Cardinality.MANY_TO_MANY:
            b_inline = _link_of(b) == "INLINE"
            a_inline = _link_of(a) == "INLINE"
            if b_inline and not a_inline or (not a_inline and not b_inline and a.is_list):
                (model_a, a), (model_b, b) = (model_b, b), (model_a, a)

        on_delete = str(args.get("onDelete", "NO_ACTION")).replace("_", " ")
        return ModelRelation(
            name=name,
            cardinality=cardinality,
            endpoints=(RelationEndpoint(model_a.name, a.name), RelationEndpoint(model_b.name, b.name)),
            junction_table=args.get("table") if cardinality is Cardinality.MANY_TO_MANY else None,
            on_delete=on_delete,
        )

    def _build_model(self, parsed: _ParsedModel, model_names: set) -> Model:
        fields = []
        for f in parsed.fields:
            db_name = f.directives.get("db", {}).get("name")
            if f.type in model_names:
                link = _link_of(f)
                fields.append(Field(
                    name=f.name,
                    type=f.type,
                    kind=FieldKind.RELATION,
                    is_required=f.is_required,
                    is_list=f.is_list,
                    db_name=(db_name or f.name) if link == "INLINE" else None,
                    relation_name=f.relation_name,
                    link=RelationLink(link) if link in ("INLINE", "TABLE") else None,
                ))
            else:
                default = f.directives.get("default", {}).get("value")
                fields.append(Field(
                    name=f.name,
                    type=f.type,
                    kind=FieldKind.SCALAR,
                    is_required=f.is_required,
                    is_list=f.is_list,
                    is_id="id" in f.directives,
                    is_unique="unique" in f.directives,
                    default=None if default is None else str(default),
                    db_name=db_name or f.name,
                ))

        return Model(
            name=parsed.name,
            fields=tuple(fields),
            db_name=parsed.directives.get("db", {}).get("name") or parsed.name,
            id_fields=tuple(parsed.directives.get("id", {}).get("fields", ())),
        )


def _link_of(f: _ParsedField) -> Optional[str]:
    """Link kind of a relation field; an explicit column name implies INLINE."""
    link = f.directives.get("relation", {}).get("link")
    if link is None and "name" in f.directives.get("db", {}) and not f.is_list:
        return "INLINE"
    return link


def parse(text: str) -> Datamodel:
    """Parse text with a fresh parser."""
    return SchemaParser().parse(text)
