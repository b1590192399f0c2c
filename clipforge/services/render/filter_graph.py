"""
Typed filter graph builder.

Render and story composition describe their ffmpeg work as an ordered list of
nodes ({inputs, filters, outputs}) and only serialize to filter_complex text at the
edge, so composition logic can be tested without parsing strings.
"""

import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Union

ParamValue = Union[str, int, float]
Params = Union[None, str, int, float, Mapping[str, ParamValue], Sequence[ParamValue]]

_STREAM_SPEC_RE = re.compile(r"^\d+(:[vas](:\d+)?)?$")


def format_number(value: float) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int) or float(value).is_integer():
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def _format_value(value: ParamValue) -> str:
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


@dataclass(frozen=True)
class Filter:
    op: str
    params: Params = None

    def serialize(self) -> str:
        if self.params is None:
            return self.op
        if isinstance(self.params, (str, int, float)):
            return f"{self.op}={_format_value(self.params)}"
        if isinstance(self.params, Mapping):
            args = ":".join(f"{k}={_format_value(v)}" for k, v in self.params.items())
        else:
            args = ":".join(_format_value(v) for v in self.params)
        return f"{self.op}={args}"


@dataclass
class FilterNode:
    inputs: List[str]
    filters: List[Filter]
    outputs: List[str]

    @property
    def op(self) -> str:
        return self.filters[0].op

    def serialize(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        chain = ",".join(f.serialize() for f in self.filters)
        return f"{ins}{chain}{outs}"


@dataclass
class FilterGraph:
    nodes: List[FilterNode] = field(default_factory=list)

    def _known_labels(self) -> set:
        return {label for node in self.nodes for label in node.outputs}

    def add(
        self,
        inputs: Union[None, str, Sequence[str]],
        filters: Union[Filter, Sequence[Filter]],
        output: Union[str, Sequence[str]],
    ) -> str:
        """Append a node and return its (first) output label."""
        if inputs is None:
            inputs = []
        elif isinstance(inputs, str):
            inputs = [inputs]
        if isinstance(filters, Filter):
            filters = [filters]
        outputs = [output] if isinstance(output, str) else list(output)

        if not filters:
            raise ValueError("A filter node needs at least one filter")

        known = self._known_labels()
        for label in inputs:
            if not _STREAM_SPEC_RE.match(label) and label not in known:
                raise ValueError(f"Unknown filter input label: {label}")
        for label in outputs:
            if label in known:
                raise ValueError(f"Duplicate filter output label: {label}")

        self.nodes.append(FilterNode(list(inputs), list(filters), outputs))
        return outputs[0]

    def find(self, op: str) -> List[FilterNode]:
        return [n for n in self.nodes if any(f.op == op for f in n.filters)]

    def labels(self) -> List[str]:
        return [label for node in self.nodes for label in node.outputs]

    def serialize(self, separator: str = ";\n") -> str:
        return separator.join(node.serialize() for node in self.nodes)

    def __str__(self) -> str:
        return self.serialize()


def ffmpeg_color(color: str) -> str:
    """#RRGGBB / #RRGGBBAA / 0xRRGGBB -> ffmpeg color syntax (0xRRGGBB[@alpha])"""
    clean = color.strip()
    if clean.startswith("#"):
        clean = clean[1:]
    elif clean.lower().startswith("0x"):
        clean = clean[2:]
    else:
        return clean  # named color
    if len(clean) == 8:
        alpha = int(clean[6:8], 16) / 255
        return f"0x{clean[:6]}@{alpha:.2f}"
    return f"0x{clean}"


def escape_drawtext(text: Optional[str]) -> str:
    """Escape literal text for the drawtext filter's text= option"""
    if not text:
        return ""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "'\\\\\\''")
        .replace(":", "\\:")
        .replace("%", "%%")
        .replace("\r\n", " ")
        .replace("\n", " ")
    )
