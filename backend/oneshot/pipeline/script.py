"""Input capture and script generation (steps 1 and 2).

Step 1 stores the user's description. Step 2 asks the text model for a
plan-sequence script: a main character description, N segments and N+1
keyframe descriptions. The response is parsed leniently, validated, and
only then written to script.json. Validation failures are not retried; the
caller re-runs step 2.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from oneshot.errors import ScriptValidationError
from oneshot.schemas.script import MAX_SEGMENTS, MIN_SEGMENTS, Script
from oneshot.services.artifact_store import INPUT_FILE, SCRIPT_FILE, ProjectDir
from oneshot.services.json_repair import parse_lenient
from oneshot.services.providers.base import TextGenerator

logger = logging.getLogger(__name__)

SCRIPT_PROMPT_TEMPLATE = """You are a movie director. Create a plan-séquence (one-shot, single continuous long take) based on this idea:

"{description}"

Split the long take into {min_segments} to {max_segments} segments of {segment_duration} seconds each. Describe every detail.
For N segments, provide N+1 keyframe descriptions: one for the opening, one for each transition between segments, and one for the ending.

Return ONLY a valid JSON object matching this JSON schema:
{schema}
"""

_RERUN = "Re-run step 2."


def build_script_prompt(description: str, segment_duration: int = 6) -> str:
    schema = Script.model_json_schema(by_alias=True)
    return SCRIPT_PROMPT_TEMPLATE.format(
        description=description,
        min_segments=MIN_SEGMENTS,
        max_segments=MAX_SEGMENTS,
        segment_duration=segment_duration,
        schema=json.dumps(schema, indent=2),
    )


def collect_input(project_dir: Path, description: str) -> None:
    """Step 1: write the description verbatim to input.txt."""
    project = ProjectDir(project_dir)
    project.ensure()
    project.write_text(INPUT_FILE, description)
    logger.info(f"Step 1: input collected for {project.path.name}")
    logger.info(f"  Description: {description}")


def parse_script(raw: str) -> Script:
    """Parse and validate a model response into a Script.

    Raises:
        ScriptValidationError: If the response cannot be parsed or the script
            violates the segment/keyframe shape.
    """
    try:
        data = parse_lenient(raw)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError subclass
        raise ScriptValidationError(f"Failed to parse script from response: {e}. {_RERUN}") from e

    if not isinstance(data, dict):
        raise ScriptValidationError(f"Script response is not a JSON object. {_RERUN}")

    segments = data.get("segments")
    keyframes = data.get("keyframes")
    if (
        not isinstance(segments, list)
        or not isinstance(keyframes, list)
        or not data.get("mainCharacterDescription")
    ):
        raise ScriptValidationError(
            f"Invalid script: missing segments, keyframes, or mainCharacterDescription. {_RERUN}"
        )

    if not MIN_SEGMENTS <= len(segments) <= MAX_SEGMENTS:
        raise ScriptValidationError(
            f"Expected {MIN_SEGMENTS} to {MAX_SEGMENTS} segments, got {len(segments)}. {_RERUN}"
        )

    expected = len(segments) + 1
    if len(keyframes) != expected:
        raise ScriptValidationError(
            f"Expected {expected} keyframes for {len(segments)} segments, "
            f"got {len(keyframes)}. {_RERUN}"
        )

    try:
        return Script.model_validate(data)
    except ValidationError as e:
        raise ScriptValidationError(f"Invalid script: {e.error_count()} field error(s): {e}. {_RERUN}") from e


async def generate_script(
    project_dir: Path,
    text_generator: TextGenerator,
    segment_duration: int = 6,
) -> Script:
    """Step 2: generate, validate and persist the script."""
    project = ProjectDir(project_dir)
    description = project.read_text(INPUT_FILE, producing_step=1)

    logger.info("Step 2: generating script...")
    raw = await text_generator.generate_text(build_script_prompt(description, segment_duration))
    script = parse_script(raw)

    project.write_json(SCRIPT_FILE, script.to_json_dict())

    logger.info(f"  Character: {script.main_character_description}")
    logger.info(f"  Keyframes: {len(script.keyframes)}")
    for i, keyframe in enumerate(script.keyframes):
        logger.info(f"    [{i}] {keyframe}")
    for i, segment in enumerate(script.segments):
        logger.info(f"  Segment {i + 1}: {segment.script}")

    return script


def load_script(project_dir: Path) -> Script:
    """Read script.json written by step 2.

    Raises:
        MissingArtifactError: If step 2 has not run.
        ScriptValidationError: If the file no longer matches the script shape.
    """
    data = ProjectDir(project_dir).read_json(SCRIPT_FILE, producing_step=2)
    if not isinstance(data, dict) or not data.get("keyframes"):
        raise ScriptValidationError("Script is missing keyframes. Re-run step 2 to generate a new script.")
    try:
        return Script.model_validate(data)
    except ValidationError as e:
        raise ScriptValidationError(f"script.json is invalid: {e}. {_RERUN}") from e
