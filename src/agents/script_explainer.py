"""Script Explainer Agent for production-beat generation

This module implements the Script Explainer Agent which sends one batch of
manga panels, together with the running story context, to the vision model
and parses the reply into production beats.

The agent performs a single request per execute() call. Retries are applied
by the orchestrator around execute(), using the policy returned by
get_retry_policy().
"""

import logging
from enum import Enum
from typing import List, Optional

from src.agents.base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    BackoffStrategy,
    RetryPolicy,
)
from src.agents.generation_client import GenerationRequest, TextGenerationClient, create_text_client
from src.agents.scene_parser import parse_production_script
from src.schemas.configuration import GenerationSettings
from src.schemas.page import Batch
from src.schemas.scene import Scene

logger = logging.getLogger(__name__)


class PanelNumbering(str, Enum):
    """How the model is told to number the panels of a batch.

    BATCH_LOCAL: panels are numbered 1..len(batch); the orchestrator adds the
        batch offset.
    ABSOLUTE: panels are numbered from start_index + 1; no offset is added.
    """
    BATCH_LOCAL = "batch_local"
    ABSOLUTE = "absolute"


SYSTEM_INSTRUCTION_TEMPLATE = """
You are a world-class professional Manga Storyboard Producer and Script Writer.
The user has uploaded manga panels. {numbering_rule}

TASK: Break the story into "Production Beats". Each beat must be tied to specific panels.

REQUIREMENTS:
1. **Granular Beats**: Every beat should ideally focus on 1-2 specific panels.
2. **Precise Mapping**: Clearly state which panel numbers are active during this narration beat.
3. **Extremely Detailed Script**: For each beat, write a long, cinematic narration in {language}.
4. **Deep Description**: Describe the character's gaze, the background details, the tension in the lines, and the overall atmosphere.
5. **Timing**: Provide a realistic duration (seconds) for how long it takes to read that script slowly and emotionally.
6. **Narrator Style**: Use a deep, calm, male narrator tone. Cinematic and emotional.
7. **Continuity**: Continue seamlessly from the story so far; do not re-introduce characters already introduced.

Output format STRICTLY like this for EACH beat:

Scene [Number]: [Action-Oriented Title]
Panels: [List the panel numbers, e.g., 1 or 2, 3]
Duration: [Seconds] sec
Voice:
"[EXTREMELY DETAILED {language_upper} SCRIPT]"
---

After the last beat, write a two or three sentence summary of the story up to the final panel,
wrapped exactly as [SUMMARY]your summary[/SUMMARY].
"""

USER_PROMPT_TEMPLATE = """Analyze these manga panels beat by beat. Create a professional production script where each narration segment is perfectly matched to the panel it describes.
This request covers panels {first_panel} to {last_panel} of a {total_pages}-panel sequence.

STORY SO FAR:
{context}

I want the narration to be long, descriptive, and deeply atmospheric. Explain the emotions, the hidden details in the background, and the flow of the scene in cinematic {language}."""

EMPTY_CONTEXT = "This is the beginning of the story."


class BatchInput(AgentInput):
    """Input for Script Explainer Agent

    Attributes:
        batch: Pages to narrate
        context: Story context produced by the previous batch ('' for the first)
        total_pages: Number of pages in the whole run
    """

    def __init__(self, batch: Batch, context: str = "", total_pages: Optional[int] = None):
        self.batch = batch
        self.context = context
        self.total_pages = total_pages if total_pages is not None else batch.end_index


class BatchOutput(AgentOutput):
    """Output from Script Explainer Agent

    Attributes:
        scenes: Parsed scenes; ids are batch-local and panel indices follow
            the agent's numbering contract
        context_update: Story context to carry into the next batch
        raw_text: Unparsed model response
    """

    def __init__(self, scenes: List[Scene], context_update: str, raw_text: str = ""):
        self.scenes = scenes
        self.context_update = context_update
        self.raw_text = raw_text


class ScriptExplainerAgent(Agent):
    """Agent responsible for narrating one batch of manga panels

    The agent:
    1. Builds the system instruction for the configured numbering contract
    2. Builds the user prompt with the batch range and the story so far
    3. Sends the batch images through the text/vision backend
    4. Parses the reply into scenes and a context update
    """

    MAX_RETRIES = 3
    INITIAL_DELAY_SECONDS = 1.0

    def __init__(
        self,
        settings: Optional[GenerationSettings] = None,
        client: Optional[TextGenerationClient] = None,
        panel_numbering: PanelNumbering = PanelNumbering.BATCH_LOCAL,
        retry_policy: Optional[RetryPolicy] = None
    ):
        """Initialize the Script Explainer Agent

        Args:
            settings: Generation settings (defaults read from the environment)
            client: Text/vision backend; created from settings on first use
            panel_numbering: Numbering contract the model is prompted with
            retry_policy: Override for the default retry policy
        """
        self.settings = settings or GenerationSettings()
        self.panel_numbering = panel_numbering
        self._client = client
        self._retry_policy = retry_policy

    @property
    def client(self) -> TextGenerationClient:
        if self._client is None:
            self._client = create_text_client(self.settings)
        return self._client

    def execute(self, input_data: AgentInput) -> AgentOutput:
        """Narrate one batch

        Args:
            input_data: BatchInput with the batch and current story context

        Returns:
            BatchOutput with parsed scenes and the context update

        Raises:
            AgentExecutionError: INVALID_INPUT for malformed input
            GenerationError: Translated backend failure
        """
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                error_code="INVALID_INPUT",
                message="Input must be a BatchInput with at least one page",
                context={"input_type": type(input_data).__name__}
            )

        batch_input: BatchInput = input_data
        request = self.build_request(batch_input)

        logger.info(
            f"Requesting beats for panels {batch_input.batch.start_index + 1}-"
            f"{batch_input.batch.end_index} of {batch_input.total_pages}"
        )
        text = self.client.generate(request)
        parsed = parse_production_script(text)
        logger.info(f"Parsed {len(parsed.scenes)} beats from batch {batch_input.batch.index + 1}")

        return BatchOutput(
            scenes=parsed.scenes,
            context_update=parsed.context_update,
            raw_text=text
        )

    def build_request(self, batch_input: BatchInput) -> GenerationRequest:
        """Assemble the generation request for a batch."""
        return GenerationRequest(
            system_instruction=self.build_system_instruction(batch_input.batch),
            prompt=self.build_user_prompt(batch_input),
            images=list(batch_input.batch.pages),
            temperature=self.settings.temperature,
        )

    def first_panel_number(self, batch: Batch) -> int:
        """Number the model should use for the first image of the batch."""
        if self.panel_numbering == PanelNumbering.ABSOLUTE:
            return batch.start_index + 1
        return 1

    def build_system_instruction(self, batch: Batch) -> str:
        first = self.first_panel_number(batch)
        last = first + batch.length - 1
        numbering_rule = (
            f'Refer to them as "Panel {first}" through "Panel {last}", in the order the images are given, '
            f'and use exactly these numbers on every "Panels:" line.'
        )
        language = self.settings.narration_language
        return SYSTEM_INSTRUCTION_TEMPLATE.format(
            numbering_rule=numbering_rule,
            language=language,
            language_upper=language.upper(),
        ).strip()

    def build_user_prompt(self, batch_input: BatchInput) -> str:
        first = self.first_panel_number(batch_input.batch)
        return USER_PROMPT_TEMPLATE.format(
            first_panel=first,
            last_panel=first + batch_input.batch.length - 1,
            total_pages=batch_input.total_pages,
            context=batch_input.context.strip() or EMPTY_CONTEXT,
            language=self.settings.narration_language,
        )

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input is a BatchInput with a non-empty batch"""
        return isinstance(input_data, BatchInput) and input_data.batch.length > 0

    def get_retry_policy(self) -> RetryPolicy:
        """Return retry policy for the Script Explainer

        Model calls fail transiently (rate limits, overload), so the batch is
        retried with exponential backoff: 1s, then 2s.
        """
        if self._retry_policy is not None:
            return self._retry_policy
        return RetryPolicy(
            max_attempts=self.MAX_RETRIES,
            backoff_strategy=BackoffStrategy.EXPONENTIAL,
            base_delay_seconds=self.INITIAL_DELAY_SECONDS,
            max_delay_seconds=30.0
        )
