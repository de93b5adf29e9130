"""FFmpeg filter graph primitives.

A graph is a linear chain of stages. Each stage consumes the previous
stage's output label (plus, for overlays, a scaled input stream) and
produces a new, unique label. The last stage writes ``[out]``.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

OUTPUT_LABEL = "out"

_INPUT_STREAM_RE = re.compile(r"^\d+:[va]$")


@dataclass
class GraphStage:
    """One filter node: ``[in1][in2]operation=params[output][extra...]``.

    ``output`` is the stream the chain continues from. ``extra_outputs``
    are further labels of multi-output filters such as ``scale2ref``.
    """

    operation: str
    inputs: list[str]
    output: str
    params: list[tuple[Optional[str], str]] = field(default_factory=list)
    extra_outputs: list[str] = field(default_factory=list)

    @property
    def outputs(self) -> list[str]:
        return [self.output, *self.extra_outputs]

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        args = ":".join(value if key is None else f"{key}={value}" for key, value in self.params)
        body = f"{self.operation}={args}" if args else self.operation
        outs = "".join(f"[{label}]" for label in self.outputs)
        return f"{ins}{body}{outs}"


@dataclass
class GraphInput:
    """One ``-i`` input of the command, in index order."""

    path: Optional[Path] = None
    lavfi: Optional[str] = None
    loop: bool = False

    def args(self) -> list[str]:
        if self.lavfi is not None:
            return ["-f", "lavfi", "-i", self.lavfi]
        args = ["-stream_loop", "-1"] if self.loop else []
        return [*args, "-i", str(self.path)]


@dataclass
class StagedResource:
    """Bytes that must be written to ``path`` before ffmpeg runs."""

    path: Path
    data: bytes


class GraphError(ValueError):
    """The stage chain violates the label invariants."""


@dataclass
class FilterGraph:
    """Ordered stages plus the inputs and files they depend on."""

    input_label: str
    stages: list[GraphStage] = field(default_factory=list)
    inputs: list[GraphInput] = field(default_factory=list)
    resources: list[StagedResource] = field(default_factory=list)
    output_label: str = OUTPUT_LABEL

    def add_input(self, graph_input: GraphInput) -> int:
        """Register an input and return its stream index."""
        self.inputs.append(graph_input)
        return len(self.inputs) - 1

    def add_stage(self, stage: GraphStage) -> str:
        self.stages.append(stage)
        return stage.output

    def render(self) -> str:
        return ";".join(stage.render() for stage in self.stages)

    def labels(self) -> list[str]:
        return [label for stage in self.stages for label in stage.outputs]

    def validate(self) -> None:
        """Check that labels are unique, defined before use and consumed at most once."""
        produced: set[str] = set()
        consumed: set[str] = set()
        for position, stage in enumerate(self.stages):
            for label in stage.inputs:
                if label in produced:
                    if label in consumed:
                        raise GraphError(f"stage {position} ({stage.operation}) reuses consumed label [{label}]")
                    consumed.add(label)
                    continue
                if label == self.input_label:
                    continue
                if _INPUT_STREAM_RE.match(label) and int(label.split(":")[0]) < len(self.inputs):
                    continue
                raise GraphError(f"stage {position} ({stage.operation}) reads undefined label [{label}]")
            for label in stage.outputs:
                if label in produced or label == self.input_label:
                    raise GraphError(f"label [{label}] is produced twice")
                produced.add(label)
        if not self.stages or self.stages[-1].output != self.output_label:
            raise GraphError(f"graph does not end in [{self.output_label}]")
