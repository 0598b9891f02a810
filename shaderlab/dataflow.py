"""Per-pass data-flow graph over the field registry."""

from dataclasses import dataclass, field

from loguru import logger

from shaderlab.errors import DuplicateFieldError
from shaderlab.registry import Dependency, Field, FieldRegistry, FieldStage


@dataclass
class ValidationIssue:
    """An active output field whose input dependency is not active."""

    field_name: str
    stage: FieldStage
    message: str


@dataclass
class DataFlowGraph:
    """Activation state of the input and output fields of one pass.

    Dependency completeness is checked by :meth:`validate` but never enforced:
    a user may leave a gap while editing and the graph keeps whatever state
    it is given.
    """

    registry: FieldRegistry
    input_fields: list[Field] = field(default_factory=list)
    output_fields: list[Field] = field(default_factory=list)

    @classmethod
    def create_default(cls, registry: FieldRegistry) -> "DataFlowGraph":
        """Graph holding a clone of every registry prototype."""
        return cls(
            registry=registry,
            input_fields=[proto.clone() for proto in registry.inputs],
            output_fields=[proto.clone() for proto in registry.outputs],
        )

    def _fields(self, stage: FieldStage) -> list[Field]:
        if stage == FieldStage.INPUT:
            return self.input_fields
        if stage == FieldStage.OUTPUT:
            return self.output_fields
        return []

    def find_field(self, name: str, stage: FieldStage) -> Field | None:
        for f in self._fields(stage):
            if f.name == name:
                return f
        return None

    def active_fields(self, stage: FieldStage) -> list[Field]:
        return [f for f in self._fields(stage) if f.is_active]

    def set_active(self, name: str, stage: FieldStage, active: bool) -> bool:
        """Set a field's activation. Required and unknown fields are left alone.

        Returns:
            True if the field's state changed
        """
        f = self.find_field(name, stage)
        if f is None or f.is_required or f.is_active == active:
            return False
        f.is_active = active
        return True

    def activate_output_with_dependencies(self, name: str) -> list[str]:
        """Activate an output field and every input field it depends on.

        Args:
            name: Output field name

        Returns:
            Names of the input fields that were switched on by this call, in
            dependency-declaration order
        """
        activated: list[str] = []
        target = self.find_field(name, FieldStage.OUTPUT)
        if target is None:
            logger.debug(f"Unknown output field: {name}")
            return activated

        target.is_active = True
        for dep in self.registry.dependencies_of(name):
            source = self.find_field(dep.source, FieldStage.INPUT)
            if source is not None and not source.is_active:
                source.is_active = True
                activated.append(source.name)

        if activated:
            logger.debug(f"Activating {name} also activated {activated}")
        return activated

    def deactivate_output(self, name: str) -> bool:
        """Deactivate an output field.

        Input fields are kept active: another output may still need them.
        """
        return self.set_active(name, FieldStage.OUTPUT, False)

    def active_dependency_edges(self) -> list[Dependency]:
        """Edges whose output and input ends are both active."""
        edges: list[Dependency] = []
        for out in self.output_fields:
            if not out.is_active:
                continue
            for dep in self.registry.dependencies_of(out.name):
                source = self.find_field(dep.source, FieldStage.INPUT)
                if source is not None and source.is_active:
                    edges.append(dep)
        return edges

    def validate(self) -> list[ValidationIssue]:
        """Report every active output field with a missing input dependency."""
        issues: list[ValidationIssue] = []
        for out in self.output_fields:
            if not out.is_active:
                continue
            for dep in self.registry.dependencies_of(out.name):
                source = self.find_field(dep.source, FieldStage.INPUT)
                if source is None or not source.is_active:
                    issues.append(
                        ValidationIssue(
                            field_name=out.name,
                            stage=FieldStage.OUTPUT,
                            message=(
                                f"'{out.display_name}' requires '{dep.source}' "
                                "in Attributes, but it is not active."
                            ),
                        )
                    )
        return issues

    def reset_to_defaults(self) -> None:
        """Restore registry activation. Annotations are kept."""
        for f in (*self.input_fields, *self.output_fields):
            f.is_active = f.is_required

    def add_custom_field(self, new_field: Field) -> Field:
        """Append a field that is not part of the registry."""
        fields = self._fields(new_field.stage)
        if new_field.stage == FieldStage.GLOBAL:
            raise ValueError("Global fields are not declared in a struct")
        if self.find_field(new_field.name, new_field.stage) is not None:
            raise DuplicateFieldError(new_field.name, new_field.stage.name)
        fields.append(new_field)
        return new_field

    def clone(self) -> "DataFlowGraph":
        return DataFlowGraph(
            registry=self.registry,
            input_fields=[f.clone() for f in self.input_fields],
            output_fields=[f.clone() for f in self.output_fields],
        )
