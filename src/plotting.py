"""Renderers for family tree descriptions and Graphviz export of the layout graph."""

import html
import logging
from pathlib import Path
from string import Template
import subprocess
import tempfile
from typing import Protocol

import networkx as nx
import pydot

from synthesis import safe_text
from viewport import (
    MAX_SCALE,
    MIN_SCALE,
    STORAGE_KEY,
    ZOOM_SENSITIVITY,
    ViewportController,
    state_to_json,
)

logger = logging.getLogger(__name__)

MERMAID_JS = "https://cdn.jsdelivr.net/npm/mermaid@11/dist/mermaid.min.js"


class RenderError(Exception):
    """Raised when a description cannot be turned into a diagram."""


class Renderer(Protocol):
    def render(self, description: str) -> Path: ...


HTML_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>$title</title>
<style>
  body { background: #f4f1ea; margin: 0; padding: 20px; font-family: Georgia, serif; }
  #viewport { position: relative; height: 85vh; overflow: hidden; background: #fff;
              border: 1px solid #ddd; border-radius: 10px; cursor: grab; }
  #canvas { position: absolute; top: 50%; left: 50%; transform-origin: 0 0;
            min-width: 2500px; min-height: 2500px; transform: $transform; }
</style>
</head>
<body>
<div id="viewport"><div id="canvas"><pre class="mermaid">
$description</pre></div></div>
<script src="$mermaid_js"></script>
<script>
  const STORAGE_KEY = "$storage_key";
  const MIN_SCALE = $min_scale, MAX_SCALE = $max_scale, SENSITIVITY = $sensitivity;
  const view = Object.assign(
    { offsetX: 0, offsetY: 0, scale: 1 },
    $initial_state,
    JSON.parse(localStorage.getItem(STORAGE_KEY) || "{}"),
    { isDragging: false, dragStartX: 0, dragStartY: 0 }
  );
  const viewport = document.getElementById("viewport");
  const canvas = document.getElementById("canvas");

  function applyTransform() {
    canvas.style.transform =
      "translate(" + view.offsetX + "px, " + view.offsetY + "px) scale(" + view.scale + ")";
    try { localStorage.setItem(STORAGE_KEY, JSON.stringify(view)); } catch (e) {}
  }
  viewport.addEventListener("mousedown", e => {
    view.isDragging = true;
    view.dragStartX = e.clientX - view.offsetX;
    view.dragStartY = e.clientY - view.offsetY;
  });
  viewport.addEventListener("mousemove", e => {
    if (!view.isDragging) return;
    view.offsetX = e.clientX - view.dragStartX;
    view.offsetY = e.clientY - view.dragStartY;
    applyTransform();
  });
  const panEnd = () => { view.isDragging = false; };
  viewport.addEventListener("mouseup", panEnd);
  viewport.addEventListener("mouseleave", panEnd);
  viewport.addEventListener("wheel", e => {
    e.preventDefault();
    view.scale = Math.min(MAX_SCALE, Math.max(MIN_SCALE, view.scale - e.deltaY * SENSITIVITY));
    applyTransform();
  }, { passive: false });

  mermaid.initialize({
    startOnLoad: false,
    securityLevel: "loose",
    theme: "base",
    themeVariables: {
      primaryColor: "#ffffff",
      primaryBorderColor: "#b91c1c",
      primaryTextColor: "#000",
      lineColor: "#555"
    },
    flowchart: { nodeSpacing: 60, rankSpacing: 100 }
  });
  mermaid.run({ nodes: document.querySelectorAll(".mermaid") })
    .then(applyTransform)
    .catch(err => console.error("Mermaid failed to render:", err));
</script>
</body>
</html>
""")


class MermaidHtmlRenderer:
    """Writes a standalone pan/zoom HTML page that renders the description with Mermaid."""

    def __init__(
        self,
        output_path: Path,
        viewport: ViewportController | None = None,
        title: str = "Family Tree",
    ):
        self.output_path = Path(output_path)
        self.viewport = viewport
        self.title = title

    def render(self, description: str) -> Path:
        transform, state_json = "none", "{}"
        if self.viewport is not None:
            transform = self.viewport.apply_transform()
            state_json = state_to_json(self.viewport.state)

        page = HTML_TEMPLATE.substitute(
            title=html.escape(self.title),
            transform=transform,
            # the browser unescapes this back to the raw description text
            description=html.escape(description),
            mermaid_js=MERMAID_JS,
            storage_key=STORAGE_KEY,
            min_scale=MIN_SCALE,
            max_scale=MAX_SCALE,
            sensitivity=ZOOM_SENSITIVITY,
            initial_state=state_json,
        )
        try:
            self.output_path.write_text(page, encoding="utf-8")
        except OSError as exc:
            raise RenderError(f"Cannot write {self.output_path}: {exc}") from exc
        return self.output_path


class MermaidSourceRenderer:
    """Writes the raw Mermaid description (.mmd)."""

    def __init__(self, output_path: Path):
        self.output_path = Path(output_path)

    def render(self, description: str) -> Path:
        try:
            self.output_path.write_text(description, encoding="utf-8")
        except OSError as exc:
            raise RenderError(f"Cannot write {self.output_path}: {exc}") from exc
        return self.output_path


class MermaidCliRenderer:
    """Renders the description to svg/png/pdf with mermaid-cli (mmdc)."""

    def __init__(self, output_path: Path, executable: str = "mmdc"):
        self.output_path = Path(output_path)
        self.executable = executable

    def render(self, description: str) -> Path:
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp) / "tree.mmd"
            source.write_text(description, encoding="utf-8")
            try:
                subprocess.run(
                    [self.executable, "-i", str(source), "-o", str(self.output_path)],
                    check=True,
                    capture_output=True,
                    text=True,
                )
            except FileNotFoundError as exc:
                raise RenderError(
                    f"{self.executable} not found; install @mermaid-js/mermaid-cli"
                ) from exc
            except subprocess.CalledProcessError as exc:
                raise RenderError(f"{self.executable} failed: {exc.stderr.strip()}") from exc
        return self.output_path


def to_pydot(H: nx.DiGraph) -> pydot.Dot:
    """
    Convert a union layout graph into a Graphviz hierarchical chart.

    - Parents appear above children (ancestors at top)
    - Spouses are aligned horizontally on the same rank as their family node
    - Family nodes are small points joining a couple to their children
    """
    P = pydot.Dot(graph_type="digraph")
    P.set("rankdir", "TB")
    P.set("splines", "ortho")
    P.set("nodesep", "0.4")
    P.set("ranksep", "0.6")

    couples: list[tuple] = []

    for node, data in H.nodes(data=True):
        if data.get("node_type") == "family":
            P.add_node(pydot.Node(node, shape="point", width="0.1", height="0.1", label=""))
            couples.append((*data["spouses"], node))
            continue

        years = data.get("birth") or ""
        if data.get("death"):
            years += f" - {data['death']}"
        label = f"{safe_text(data.get('person_name'))}\n{safe_text(years)}"

        P.add_node(
            pydot.Node(
                node,
                label=label,
                shape="box",
                style="rounded,filled",
                fillcolor="white",
                color="#b91c1c",
                fontsize="10",
            )
        )

    for u, v, data in H.edges(data=True):
        if data.get("edge_type") == "spouse_to_family":
            P.add_edge(pydot.Edge(u, v, dir="none", color="darkgray"))
        else:
            P.add_edge(pydot.Edge(u, v, color="darkgray"))

    for a, b, fam in couples:
        sg = pydot.Subgraph(f"couple_{fam}", rank="same")
        sg.add_node(pydot.Node(a))
        sg.add_node(pydot.Node(fam))
        sg.add_node(pydot.Node(b))
        P.add_subgraph(sg)

    return P


def plot_graph(H: nx.DiGraph, output_path: Path | None = None):
    """
    Plot the union layout graph with Graphviz.

    Args:
        H: Union layout graph from graph.build_union_layout_graph
        output_path: Where to save (png, svg, pdf or dot). If None, displays interactively.
    """
    P = to_pydot(H)

    if output_path:
        ext = output_path.suffix.lower().lstrip(".")
        if ext not in ("png", "svg", "pdf", "dot"):
            ext = "png"
        try:
            if ext == "dot":
                output_path.write_text(P.to_string(), encoding="utf-8")
            else:
                P.write(str(output_path), format=ext)
        except OSError as exc:
            raise RenderError(f"Graphviz export failed: {exc}") from exc
        logger.info("Graph saved to %s", output_path)
        return output_path

    import matplotlib.image as mpimg
    import matplotlib.pyplot as plt

    with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as f:
        P.write(f.name, format="png")
        img = mpimg.imread(f.name)
        plt.figure(figsize=(20, 16))
        plt.imshow(img)
        plt.axis("off")
        plt.tight_layout()
        plt.show()
    return None
