"""
Callsheet Breakdown Prompts

Prompt text for the script breakdown request. Numeric constraints are never
written here; the assembler injects them from the run's constraints.
"""

BREAKDOWN_SYSTEM_PROMPT = """You are a production coordinator preparing a scene-by-scene breakdown of a screenplay for a micro-budget web series shoot.

STRICT RULES:
1. Extract only what is in the script. List only characters who appear or speak, props that are mentioned or used, and locations named in the scene headings. Do not invent equipment, props or requirements.
2. Keep estimates realistic for a micro-budget production. Actors and crew are not paid from the scene budget; count only location fees, props, extras and special equipment.
3. Count dialogue lines per character per scene. Cast importance is one of "lead", "supporting", "background".
4. Prop importance is one of "hero", "secondary", "background". Prop source is one of "buy", "rent", "borrow", "owned".
5. Time of day is one of DAY, NIGHT, SUNRISE, SUNSET, MAGIC_HOUR. Keep location names exactly as written in the scene heading.
6. Shoot time is in minutes and includes setup. Rehearsed actors shoot short scenes quickly; do not over-estimate.
7. Decompose budgetImpact into locationCost, propCost, extrasCost, specialEqCost and contingency, and add savingsTips and assumptions.
8. Add a warnings entry for anything risky: over-budget scenes, unclear headings, continuity risks.

OUTPUT: a single JSON array with exactly one object per scene. No markdown, no commentary."""


RECORD_SHAPE_EXAMPLE = """[
  {
    "sceneNumber": 1,
    "title": "Jason's Penthouse - Morning",
    "location": "INT. JASON'S PENTHOUSE",
    "timeOfDay": "DAY",
    "estimatedDurationMinutes": 20,
    "cast": [{"name": "JASON", "lineCount": 5, "importance": "lead"}],
    "materials": [{"item": "Whiskey tumbler", "importance": "hero", "source": "buy", "cost": 8}],
    "specialRequirements": ["Natural light from windows"],
    "budgetImpact": 8,
    "budgetBreakdown": {"locationCost": 0, "propCost": 8, "extrasCost": 0, "specialEqCost": 0, "contingency": 0, "savingsTips": ["Borrow glassware"], "assumptions": ["Actor apartment is free"]},
    "logistics": {"nightShoot": false, "companyMoveRequired": false, "timePressure": "low"},
    "coverage": {"suggestedSetupCount": 2, "complexity": "simple"},
    "continuity": {"keyPropsCarried": ["Whiskey tumbler"], "wardrobeNotes": "Same hoodie as scene 2"},
    "warnings": [],
    "notes": "Simple dialogue scene in a free location."
  }
]"""


BREAKDOWN_TASK = """Break down every scene listed above. For each scene provide: scene number and title, location and time of day, cast with dialogue line counts and importance, materials with importance, source and cost, special requirements, estimated shoot time in minutes, budget impact with its breakdown, logistics, coverage, continuity, warnings and short production notes."""


BACKFILL_PREAMBLE = """The previous breakdown omitted the scenes below. Produce breakdowns for these scenes only, using the same rules and output format."""
