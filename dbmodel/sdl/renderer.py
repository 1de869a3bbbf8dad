"""Renders a datamodel as schema-description text."""

from typing import List, Optional

from dbmodel.database.models import Cardinality
from dbmodel.datamodel.models import Datamodel, Field, Model, ModelRelation, RelationLink

QUOTED_DEFAULT_TYPES = {"String", "DateTime", "Json", "ID"}

INDENT = "  "


def quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class DatamodelRenderer:
    """Renders ``Datamodel`` objects to text.

    Output is deterministic: models and fields appear in datamodel order,
    directives in a fixed order, one blank line between models and a
    trailing newline.
    """

    def render(self, datamodel: Datamodel) -> str:
        blocks = [self.render_model(model, datamodel) for model in datamodel.models]
        if not blocks:
            return ""
        return "\n\n".join(blocks) + "\n"

    def render_model(self, model: Model, datamodel: Datamodel) -> str:
        header = f"type {model.name}"
        if model.db_name and model.db_name != model.name:
            header += f" @db(name: {quote(model.db_name)})"
        if model.id_fields:
            header += f" @id(fields: [{', '.join(quote(f) for f in model.id_fields)}])"

        lines = [header + " {"]
        for f in model.fields:
            lines.append(INDENT + self.render_field(f, datamodel))
        lines.append("}")
        return "\n".join(lines)

    def render_field(self, f: Field, datamodel: Datamodel) -> str:
        if f.is_list:
            type_expr = f"[{f.type}]"
        else:
            type_expr = f.type + ("!" if f.is_required else "")

        directives: List[str] = []
        if f.is_id:
            directives.append("@id")
        if f.is_unique:
            directives.append("@unique")
        if f.default is not None:
            value = quote(f.default) if f.type in QUOTED_DEFAULT_TYPES else f.default
            directives.append(f"@default(value: {value})")
        if f.db_name is not None and f.db_name != f.name:
            directives.append(f"@db(name: {quote(f.db_name)})")
        if f.is_relation:
            relation = datamodel.get_relation(f.relation_name)
            directives.append(self._relation_directive(f, relation))

        line = f"{f.name}: {type_expr}"
        if directives:
            line += " " + " ".join(directives)
        return line

    def _relation_directive(self, f: Field, relation: Optional[ModelRelation]) -> str:
        args = [f"name: {quote(f.relation_name)}"]
        if relation is None:
            return f"@relation({', '.join(args)})"

        cardinality = relation.cardinality
        if cardinality is Cardinality.MANY_TO_MANY:
            args.append(f"link: {RelationLink.TABLE.value}")
            if relation.junction_table:
                args.append(f"table: {quote(relation.junction_table)}")
        elif cardinality in (Cardinality.ONE_TO_ONE, Cardinality.ONE_TO_MANY):
            if f.link is RelationLink.INLINE:
                args.append(f"link: {RelationLink.INLINE.value}")
                if relation.on_delete != "NO ACTION":
                    args.append(f"onDelete: {relation.on_delete.replace(' ', '_')}")
        else:
            raise ValueError(f"Unhandled cardinality: {cardinality}")
        return f"@relation({', '.join(args)})"


def render(datamodel: Datamodel) -> str:
    """Render a datamodel with the default renderer."""
    return DatamodelRenderer().render(datamodel)
