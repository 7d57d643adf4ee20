"""
Prompt templates for the category agent.

Category wording is plain data: the shared skeletons below are filled from the
per-category fragments in :data:`CATEGORY_TEMPLATES`.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from crafternia.scene.progressive import StepMode

MASTER_TEMPLATE = """Describe a studio reference photograph of a finished {display_name} project: {concept}.

STYLE
{style_notes}

VIEW
- {view}
- Neutral background, even light, the whole piece visible and centered."""

STEP_TEMPLATE = """CATEGORY: {display_name}
CURRENT STEP: {step_description}{label_line}
Show only the work this step adds. Colors, materials and proportions must match the finished piece.

STEP FOCUS
{step_notes}"""

DISSECTION_TEMPLATE = """You are an experienced {role} studying the finished piece in this image: "{concept}".

1. Rate the complexity (Simple, Moderate or Complex) and give a score from 1 to 10.
2. List the materials needed for this exact piece.{materials_clause}
3. Break the build into EXACTLY {step_count} steps, in this order:
{step_plan}
{title_rule}
Describe what the piece looks like at the end of each step. Add a safetyWarning only when a step
involves blades, heat, solvents or small parts."""

PATTERN_SHEET_TEMPLATE = """Turn the reference {display_name} piece into a flat, printable template sheet.{label_line}

SHEET REQUIREMENTS
{pattern_notes}
- Plain white background with no grid or texture.
- Same colors and proportions as the reference."""

DISSECTION_SYSTEM_PROMPT = (
    "You are a craft instructor who writes precise, safe, beginner-friendly build guides. "
    "Reply with a single JSON object that follows the schema you are given. No prose, no Markdown."
)

COMPOSITION_EXTRACTION_INSTRUCTION = """Describe only the COMPOSITION of the attached image as a structured scene.
- List every distinct object with its location, relationship to the others, relative size and count.
- Keep descriptions neutral: name the object, not its material, texture or colors.
- Fill lighting, background and camera fields with what the image shows."""

ADAPTATION_TEMPLATE = """Re-imagine the scene below as a handmade {display_name} piece.

SOURCE COMPOSITION (JSON)
{composition_json}

RULES
- Keep the same number of objects in the same order.
- Keep every object's location, relationship and relative size.
- Change materials, textures, colors and style to fit {display_name}:
{style_notes}"""

REFINEMENT_TEMPLATE = """Advance a step-by-step build by exactly one stage.

PREVIOUS STAGE (JSON)
{previous_json}

FINISHED PIECE (JSON)
{master_json}

This is step {step_number} of {total_steps}. Starting from the previous stage, add only the work
described below so the scene moves one stage closer to the finished piece. Do not add work that
belongs to later steps. Keep lighting, background, camera and object arrangement unchanged.

{step_prompt}"""

REVEAL_TEMPLATE = """Derive an earlier stage of the finished piece below.

FINISHED PIECE (JSON)
{master_json}

This is step {step_number} of {total_steps}: the piece is about {percent}% complete.
{removal_clause}
Simplify object descriptions, textures and colors accordingly. Keep the same objects, lighting,
background and camera.

{step_prompt}"""

REVEAL_FINAL_CLAUSE = (
    "This is the last step: describe nearly the full finished piece, with every layer in place "
    "and only the lightest final polish still to come."
)

TURNTABLE_TEMPLATE = """Rotate the camera around the finished piece below to show its {view} side.

FINISHED PIECE (JSON)
{master_json}

- {rotation}
- The piece keeps the same pose; only the viewpoint changes.
- Update each object's orientation and the camera angle. Leave everything else as it is."""

TURNTABLE_ROTATIONS: dict[str, str] = {
    "left": "Move the camera 90 degrees to the left so the left profile faces the viewer.",
    "right": "Move the camera 90 degrees to the right so the right profile faces the viewer.",
    "back": "Move the camera 180 degrees behind the piece so only its back is visible.",
}

IDENTIFY_INSTRUCTION = """The first image is an object cut out of the second image.
Name the selected object in 2 to 5 words (for example "Hylian shield" or "clay mushroom").
Name only that object, not the whole scene. Reply with the name and nothing else."""

SELECTED_OBJECT_GROUPS: tuple[str, ...] = (
    "Head group: head, face, hair and headwear",
    "Body group: torso and core structure",
    "Clothing and surface group: garments, textures and surface details",
    "Limbs and props group: arms, legs, held props and base",
)

SELECTED_OBJECT_DISSECTION_TEMPLATE = """The first image shows "{label}" cut out of the full scene in the second image.
Write build instructions for "{label}" only; ignore everything else in the scene.

1. Rate the complexity (Simple, Moderate or Complex) and give a score from 1 to 10.
2. List the materials needed.
3. Break the build into EXACTLY 4 steps grouped by body part, in this order:
{step_plan}"""

SCHEMA_CLAUSE = """Reply with JSON matching this schema:
{schema_json}"""


CATEGORY_TEMPLATES: dict[str, dict[str, Any]] = {
    "papercraft": {
        "display_name": "Papercraft",
        "description": "Folded and glued paper models with printable patterns.",
        "role": "papercraft designer",
        "style_notes": [
            "Real paper fibers and visible thickness, not a smooth 3D render",
            "Crisp scored folds, cut edges and small shadows where layers stand up",
            "Matte cardstock finish that looks folded and glued by hand",
        ],
        "view": "Isometric or front-facing to show depth",
        "step_notes": [
            "Flat pieces in a knolling layout, labeled by letter",
            "Solid cut lines, dashed fold lines and marked glue tabs",
            "Hands folding or gluing with bold arrows",
        ],
        "step_plan": [
            "Printed sheets with the pattern traced, nothing cut yet",
            "All pieces cut out and laid flat",
            "Main folds creased, pieces still separate",
            "Core structure glued together",
            "Most parts attached, small pieces going on",
            "Finished model matching the reference",
        ],
        "pattern_notes": [
            "Every piece unfolded flat so it can be cut and assembled",
            "Solid black cut lines, dashed fold lines, labeled glue tabs",
        ],
    },
    "clay": {
        "display_name": "Clay",
        "description": "Hand-sculpted polymer and air-dry clay figures.",
        "role": "clay sculptor",
        "style_notes": [
            "Soft matte clay surface with faint tool marks and fingerprints",
            "Rounded, blended seams between parts",
            "Saturated solid colors as if each part was mixed by hand",
        ],
        "view": "Three-quarter view at table height",
        "step_notes": [
            "Clay portions with size cues such as pea-sized or walnut-sized",
            "Hands rolling, pinching or smoothing with arrows",
            "Joined parts with blended seams",
        ],
        "step_plan": [
            "Clay conditioned and divided into colored portions",
            "Basic shapes rolled for every part",
            "Main body formed",
            "Head and limbs attached and blended",
            "Surface details and texture added",
            "Finished, baked or dried piece matching the reference",
        ],
        "pattern_notes": [
            "Actual-size silhouettes of every clay part as a sizing guide",
            "Color swatch for each clay mix",
        ],
    },
    "woodcraft": {
        "display_name": "Woodcraft",
        "description": "Small wooden builds joined, sanded and finished by hand.",
        "role": "woodworker",
        "style_notes": [
            "Visible grain, end grain and sanded edges",
            "Clean joints with subtle glue lines",
            "Oil or wax finish with a soft sheen",
        ],
        "view": "Three-quarter view showing joinery",
        "step_notes": [
            "Boards and dowels laid out with measurements",
            "Grain direction marked with arrows",
            "Hands aligning and clamping joints",
        ],
        "step_plan": [
            "Stock marked out with cut lines",
            "Parts cut to size and laid out",
            "Edges shaped and sanded",
            "Main frame glued and clamped",
            "Remaining parts fitted",
            "Finished and oiled piece matching the reference",
        ],
        "pattern_notes": [
            "Full-size cutting templates with dimensions",
            "Grain direction arrows on every part",
        ],
    },
    "jewelry": {
        "display_name": "Jewelry",
        "description": "Beaded and wire-wrapped jewelry pieces.",
        "role": "jewelry maker",
        "style_notes": [
            "Polished metal findings with true reflections",
            "Clear, faceted or glossy beads in exact colors",
            "Delicate macro detail on a soft neutral surface",
        ],
        "view": "Top-down or slight angle, close up",
        "step_notes": [
            "Beads and findings counted in a knolling layout",
            "Pliers forming loops with arrows",
            "Sections joined with jump rings",
        ],
        "step_plan": [
            "Beads, wire and findings sorted",
            "Wire cut and first loops formed",
            "Main strand or frame assembled",
            "Focal elements attached",
            "Clasp and finishing findings added",
            "Finished piece matching the reference",
        ],
        "pattern_notes": [
            "Bead layout diagram at actual size",
            "Wire lengths and loop positions labeled",
        ],
    },
    "kids_crafts": {
        "display_name": "Kids Crafts",
        "description": "Simple, bright crafts children can make with an adult.",
        "role": "kids activity designer",
        "style_notes": [
            "Bright, cheerful colors and playful shapes",
            "Child-safe materials such as construction paper, pom poms and pipe cleaners",
            "Looks achievable by a child with some help",
        ],
        "view": "Front-facing and centered",
        "step_notes": [
            "One clear action per panel with small hands",
            "Big arrows and simple labels such as GLUE HERE",
        ],
        "step_plan": [
            "Gather supplies and cut the basic shapes",
            "Build the main body",
            "Add faces and decorations",
            "Finishing touches and clean up",
        ],
        "step_count": 4,
        "pattern_notes": [
            "Large, bold shapes that are easy to cut",
            "Simple names on every piece",
        ],
    },
    "coloring_book": {
        "display_name": "Coloring Book",
        "description": "Line-art coloring pages and how to color them.",
        "role": "coloring book illustrator",
        "style_notes": [
            "Clean black outlines on pure white",
            "Closed shapes of varied size, none too small to color",
            "Thicker outer lines and thinner detail lines",
        ],
        "view": "Flat front view of the page",
        "step_notes": [
            "Colored pencil or marker filling the named areas",
            "Uncolored areas stay white",
        ],
        "step_plan": [
            "Background color laid in",
            "Base color on the main subject",
            "Secondary elements colored",
            "Remaining small areas filled",
            "Shading for depth",
            "Highlights and final polish",
        ],
        "mandated_titles": (
            "Begin with the main background color",
            "Color the primary subject's base",
            "Add secondary element colors",
            "Fill in remaining details",
            "Add shading and depth",
            "Final highlights and polish",
        ),
        "required_materials": (
            "Coloring page",
            "Colored pencils, crayons or markers",
            "Eraser",
        ),
        "pattern_notes": [
            "The pure line art with no color at all",
            "A small palette key suggesting colors per area",
        ],
    },
    "costume_props": {
        "display_name": "Costume & Props",
        "description": "EVA foam and thermoplastic cosplay props.",
        "role": "prop maker",
        "style_notes": [
            "Sealed and painted foam with weathering",
            "Beveled edges and layered panels",
            "Believable metal, leather or wood paint effects",
        ],
        "view": "Front view at a slight angle",
        "step_notes": [
            "Foam pieces labeled with thickness",
            "Bevel angles and heat-forming shown with arrows",
        ],
        "step_plan": [
            "Templates traced onto foam",
            "Pieces cut and edges beveled",
            "Parts heat-formed",
            "Main body glued together",
            "Details added and surface sealed",
            "Painted and weathered prop matching the reference",
        ],
        "pattern_notes": [
            "Every foam piece flat with thickness labels",
            "Bevel edges and alignment marks",
        ],
    },
    "oil_painting": {
        "display_name": "Oil Painting",
        "description": "Oil paintings built up from sketch to glazing.",
        "role": "oil painter",
        "style_notes": [
            "Primed canvas with visible brushwork and impasto",
            "Luminous color built from thin glazes",
            "Gallery lighting that shows paint relief",
        ],
        "view": "Canvas straight on with a slight angle to show texture",
        "step_notes": [
            "Only the paint layers this stage adds",
            "Progress from thin lean layers to thick rich ones",
        ],
        "step_plan": [
            "Composition sketch on the canvas",
            "Monochrome value underpainting",
            "Flat local colors",
            "Forms modeled with values",
            "Details and impasto",
            "Finished painting with full depth",
        ],
        "mandated_titles": (
            "Charcoal sketch on primed canvas",
            "Monochrome underpainting for values",
            "Flat local colors blocked in",
            "Forms modeled with basic values",
            "Details and impasto nearly complete",
            "Reference image with full depth visible",
        ),
        "required_materials": (
            "Primed canvas",
            "Oil paints",
            "Bristle brushes",
            "Palette knife",
            "Linseed oil medium",
            "Odorless mineral spirits",
        ),
        "default_step_mode": StepMode.INCREMENTAL,
        "removal_hierarchy": (
            "final glazes and varnish",
            "impasto details and highlights",
            "modeled forms and shading",
            "flat local colors",
            "monochrome underpainting",
            "charcoal sketch on primed canvas",
        ),
        "pattern_notes": [
            "Grayscale value study",
            "Palette of paint mixes with names",
        ],
    },
    "drawing": {
        "display_name": "Drawing",
        "description": "Pencil and ink drawings from gesture to rendering.",
        "role": "illustrator",
        "style_notes": [
            "Graphite or ink on paper with visible strokes",
            "Confident contours and layered hatching",
            "Paper texture visible under the marks",
        ],
        "view": "Sheet straight on",
        "step_notes": [
            "Only the marks this stage adds",
            "Construction lines get lighter as rendering builds",
        ],
        "step_plan": [
            "Gesture lines for placement",
            "Geometric shapes for structure",
            "Contour lines",
            "Core shadows and values",
            "Detailed rendering",
            "Finished drawing",
        ],
        "mandated_titles": (
            "Faint gesture lines showing placement",
            "Basic geometric shapes for structure",
            "Clean contour lines defining edges",
            "Core shadows and basic values",
            "Detailed rendering nearly complete",
            "Reference image with full rendering",
        ),
        "required_materials": ("Sketchbook or paper", "Pencils", "Eraser"),
        "default_step_mode": StepMode.INCREMENTAL,
        "removal_hierarchy": (
            "final accents and crisp highlights",
            "detailed texture rendering",
            "core shadows and values",
            "clean contour lines",
            "basic geometric shapes",
            "faint gesture lines",
        ),
        "pattern_notes": [
            "Construction grid with the main shapes",
            "Value scale from light to dark",
        ],
    },
    "watercolor": {
        "display_name": "Watercolor",
        "description": "Transparent watercolor paintings built from washes.",
        "role": "watercolor painter",
        "style_notes": [
            "Cold-press paper texture and soft blooms",
            "Transparent layered washes with white paper showing through",
            "Crisp taped borders",
        ],
        "view": "Paper straight on, taped to a board",
        "step_notes": [
            "Only the washes this stage adds",
            "Light to dark, wet to dry",
        ],
        "step_plan": [
            "Taped paper with a light sketch",
            "Background washes",
            "Main shapes in color",
            "Secondary layers for depth",
            "Fine details and accents",
            "Finished painting with tape removed",
        ],
        "mandated_titles": (
            "Prepare paper and sketch lightly",
            "Apply initial washes for background",
            "Build up main shapes with color",
            "Add depth with secondary layers",
            "Paint fine details and accents",
            "Final touches and remove tape",
        ),
        "required_materials": (
            "Cold-press watercolor paper",
            "Watercolor paints",
            "Round brushes",
            "Flat wash brush",
            "Masking tape",
        ),
        "pattern_notes": [
            "Light outline of the composition",
            "Wash order diagram and color swatches",
        ],
    },
}


def bullet_lines(lines: Sequence[str]) -> str:
    return "\n".join(f"- {line}" for line in lines)


def numbered_plan(plan: Sequence[str], titles: Sequence[str] = ()) -> str:
    rows: list[str] = []
    for index, stage in enumerate(plan, start=1):
        if titles:
            rows.append(f'STEP {index} - title: "{titles[index - 1]}" ({stage})')
        else:
            rows.append(f"STEP {index} - {stage}")
    return "\n".join(rows)


def label_line(label: str | None, prefix: str = "\nSUBJECT: ") -> str:
    return f"{prefix}{label.strip()}" if label and label.strip() else ""


def schema_clause(schema: Mapping[str, Any]) -> str:
    return SCHEMA_CLAUSE.format(schema_json=json.dumps(schema, indent=2))
