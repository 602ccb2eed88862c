"""Pipeline Orchestrator for chunked manga narration.

This module implements the orchestrator that drives a multi-batch explainer
run: Page Loader → (per batch) Script Explainer → merge, plus the independent
manga art generation path.

The orchestrator handles:
- Partitioning the page sequence into batches of at most ``batch_size`` pages
- Strictly sequential batch requests, each carrying the story context
  produced by the previous batch
- Retry of each batch with exponential backoff
- Renumbering scene ids and panel indices into one global scheme
- Structured logging at each batch

Error Handling Strategy:
- **Retry**: network failures, 429 and 5xx responses are retried per batch
- **Abort**: any batch that fails permanently aborts the whole run; partial
  results are never returned, since skipping a batch would desynchronise the
  global numbering
- **Cancel**: a set cancel event is observed before each batch attempt
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from src.agents.base import AgentExecutionError, BackoffStrategy, RetryPolicy
from src.agents.image_generator import ImagePromptInput, MangaImageAgent
from src.agents.page_loader import PageLoaderAgent, PageSourceInput
from src.agents.scene_parser import fallback_title
from src.agents.script_explainer import BatchInput, BatchOutput, PanelNumbering, ScriptExplainerAgent
from src.orchestrator.logger import StructuredJSONLogger
from src.orchestrator.retry_policy import execute_with_retry, extract_status_code
from src.schemas.configuration import GenerationSettings
from src.schemas.image import AspectRatio, GeneratedImage
from src.schemas.page import Batch, Page
from src.schemas.scene import ProductionScript, Scene


logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 10


@dataclass
class PipelineConfig:
    """Configuration for explainer runs.

    Attributes:
        batch_size: Maximum number of pages sent in one request
        panel_numbering: Numbering contract the model is prompted with
        provider: Text/vision backend (gemini|openai)
        text_model: Text/vision model override
        image_model: Image generation model
        temperature: Sampling temperature for script generation
        image_size: Resolution tier for generated images
        narration_language: Language of the narration
        max_attempts: Attempts per batch, including the first
        base_delay_seconds: First backoff delay; doubles on each retry
        log_directory: Directory for explainer.log (None for console only)
    """
    batch_size: int = DEFAULT_BATCH_SIZE
    panel_numbering: PanelNumbering = PanelNumbering.BATCH_LOCAL
    provider: str = "gemini"
    text_model: Optional[str] = None
    image_model: str = "gemini-3-pro-image-preview"
    temperature: float = 0.8
    image_size: str = "1K"
    narration_language: str = "Hindi"
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    log_directory: Optional[str] = None

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        self.panel_numbering = PanelNumbering(self.panel_numbering)

    def to_generation_settings(self) -> GenerationSettings:
        """Convert to GenerationSettings for the generation agents."""
        return GenerationSettings(
            provider=self.provider,
            text_model=self.text_model,
            image_model=self.image_model,
            temperature=self.temperature,
            image_size=self.image_size,
            narration_language=self.narration_language
        )

    def to_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            backoff_strategy=BackoffStrategy.EXPONENTIAL,
            base_delay_seconds=self.base_delay_seconds,
            max_delay_seconds=60.0
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "panel_numbering": self.panel_numbering.value,
            "provider": self.provider,
            "max_attempts": self.max_attempts,
        }


class RunCancelledError(AgentExecutionError):
    """Raised when a run is cancelled before its next batch request"""

    def __init__(self, batch_index: int):
        self.batch_index = batch_index
        super().__init__(
            "RUN_CANCELLED",
            f"Run cancelled before batch {batch_index + 1}",
            context={"batch_index": batch_index}
        )


@dataclass(frozen=True)
class RunState:
    """Accumulator threaded through the batch loop.

    Attributes:
        scenes: Globally indexed scenes merged so far
        context: Story context carried into the next batch
        next_id: Id for the next merged scene
    """
    scenes: Tuple[Scene, ...] = ()
    context: str = ""
    next_id: int = 1


def plan_batches(pages: Sequence[Page], batch_size: int = DEFAULT_BATCH_SIZE) -> List[Batch]:
    """Partition pages into consecutive batches of at most ``batch_size``.

    Examples:
        25 pages with batch_size 10 → start indices 0, 10, 20 and
        lengths 10, 10, 5.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    return [
        Batch(index=position, start_index=start, pages=tuple(pages[start:start + batch_size]))
        for position, start in enumerate(range(0, len(pages), batch_size))
    ]


def globalize_scene(
    scene: Scene,
    scene_id: int,
    offset: int,
    total_pages: int
) -> Scene:
    """Return a copy of a batch scene with global id and panel indices.

    Args:
        scene: Scene as parsed from the batch response
        scene_id: Global id to assign
        offset: Amount to add to each panel index (0 when the model already
            used absolute numbers)
        total_pages: Size of the global page sequence

    Returns:
        Scene whose panel indices all lie in [0, total_pages)
    """
    shifted = [index + offset for index in scene.panel_indices]
    panel_indices = [index for index in shifted if 0 <= index < total_pages]
    if len(panel_indices) != len(shifted):
        logger.warning(
            f"Dropped out-of-range panel references {sorted(set(shifted) - set(panel_indices))} "
            f"from scene '{scene.title}'"
        )

    pages_label = scene.pages_label
    if offset and panel_indices:
        pages_label = "Panels " + ", ".join(str(index + 1) for index in panel_indices)

    title = scene.title
    if title == fallback_title(scene.id):
        title = fallback_title(scene_id)

    return scene.model_copy(update={
        "id": scene_id,
        "title": title,
        "panel_indices": panel_indices,
        "pages_label": pages_label,
    })


def advance_run_state(
    state: RunState,
    batch: Batch,
    output: BatchOutput,
    total_pages: int,
    panel_numbering: PanelNumbering = PanelNumbering.BATCH_LOCAL
) -> RunState:
    """Merge one batch's output into the run state.

    Scene ids continue from ``state.next_id``; panel indices are mapped into
    the global page sequence; the context is replaced, not appended.
    """
    offset = batch.start_index if panel_numbering == PanelNumbering.BATCH_LOCAL else 0

    merged = [
        globalize_scene(scene, state.next_id + position, offset, total_pages)
        for position, scene in enumerate(output.scenes)
    ]

    return RunState(
        scenes=state.scenes + tuple(merged),
        context=output.context_update,
        next_id=state.next_id + len(merged),
    )


class Orchestrator:
    """Main orchestrator for the manga explainer.

    Explainer runs:
    1. Page Loader Agent - Turn PDFs and image files into ordered pages
    2. Script Explainer Agent - Narrate each batch with the running context
    3. Merge - Global ids, global panel indices, context replacement

    Image generation runs through the Manga Image Agent and shares no state
    with explainer runs.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        explainer_agent: Optional[ScriptExplainerAgent] = None,
        image_agent: Optional[MangaImageAgent] = None,
        page_loader: Optional[PageLoaderAgent] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize the orchestrator.

        Args:
            config: Pipeline configuration (uses defaults if not provided)
            explainer_agent: Script Explainer Agent (built from config if not provided)
            image_agent: Manga Image Agent (built from config if not provided)
            page_loader: Page Loader Agent
            sleep: Delay function used between retries
        """
        self.config = config or PipelineConfig()
        settings = self.config.to_generation_settings()

        self.explainer_agent = explainer_agent or ScriptExplainerAgent(
            settings=settings,
            panel_numbering=self.config.panel_numbering,
            retry_policy=self.config.to_retry_policy()
        )
        self.image_agent = image_agent or MangaImageAgent(settings=settings)
        self.page_loader = page_loader or PageLoaderAgent()
        self._sleep = sleep

    def run(
        self,
        pages: Sequence[Page],
        cancel_event: Optional[threading.Event] = None
    ) -> List[Scene]:
        """Narrate pages and return the globally indexed scene list.

        Raises:
            GenerationError: A batch failed permanently or exhausted its retries
            RunCancelledError: cancel_event was set before a batch request
        """
        return list(self.explain(pages, cancel_event).scenes)

    def explain(
        self,
        pages: Sequence[Page],
        cancel_event: Optional[threading.Event] = None
    ) -> ProductionScript:
        """Narrate pages batch by batch.

        Args:
            pages: Ordered page sequence
            cancel_event: Set it to stop the run before the next batch request

        Returns:
            ProductionScript with the merged scenes and the final story context
        """
        pages = list(pages)
        if not pages:
            logger.info("No pages supplied; nothing to narrate")
            return ProductionScript()

        batches = plan_batches(pages, self.config.batch_size)
        total_pages = len(pages)
        panel_numbering = self.explainer_agent.panel_numbering
        state = RunState()
        run_start_time = time.time()

        structured_logger = StructuredJSONLogger(output_directory=self.config.log_directory)
        try:
            structured_logger.log_run_start(
                page_count=total_pages,
                batch_count=len(batches),
                config=self.config.summary()
            )

            for batch in batches:
                output = self._run_batch(batch, state, total_pages, structured_logger, cancel_event)
                state = advance_run_state(state, batch, output, total_pages, panel_numbering)

            structured_logger.log_run_complete(
                duration_seconds=time.time() - run_start_time,
                scene_count=len(state.scenes),
                batch_count=len(batches)
            )
        except Exception as e:
            structured_logger.log_run_error(
                error_type=type(e).__name__,
                error_message=str(e),
                batch_index=getattr(e, 'batch_index', None)
            )
            raise
        finally:
            structured_logger.close()

        return ProductionScript(
            scenes=list(state.scenes),
            summary=state.context,
            page_count=total_pages
        )

    def run_pipeline(
        self,
        paths: Sequence[str],
        cancel_event: Optional[threading.Event] = None
    ) -> ProductionScript:
        """Load pages from files and narrate them.

        Args:
            paths: PDF and image files, in upload order

        Returns:
            ProductionScript for all loaded pages
        """
        logger.info(f"Loading pages from {len(paths)} files")
        loaded = self.page_loader.execute(PageSourceInput(paths))
        if loaded.skipped:
            logger.warning(f"Skipped {len(loaded.skipped)} unsupported files")
        return self.explain(loaded.pages, cancel_event)

    def generate_image(
        self,
        prompt: str,
        aspect_ratio: Union[AspectRatio, str] = AspectRatio.SQUARE
    ) -> GeneratedImage:
        """Generate manga artwork; see MangaImageAgent.generate_image.

        The call is wrapped in the image agent's retry policy, which is
        single-shot unless the agent was configured otherwise.
        """
        prompt_input = ImagePromptInput(prompt, aspect_ratio)
        return execute_with_retry(
            lambda: self.image_agent.execute(prompt_input),
            self.image_agent.get_retry_policy(),
            context_name="Image generation",
            sleep=self._sleep
        )

    def _run_batch(
        self,
        batch: Batch,
        state: RunState,
        total_pages: int,
        structured_logger: StructuredJSONLogger,
        cancel_event: Optional[threading.Event]
    ) -> BatchOutput:
        """Run one batch through the Script Explainer with retry logic.

        Raises:
            RunCancelledError: cancel_event was set before an attempt
        """
        batch_input = BatchInput(batch=batch, context=state.context, total_pages=total_pages)
        start_time = time.time()

        def before_attempt(attempt: int) -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise RunCancelledError(batch.index)
            structured_logger.log_batch_start(
                batch_index=batch.index,
                start_index=batch.start_index,
                length=batch.length,
                retry_attempt=attempt
            )

        try:
            output = execute_with_retry(
                lambda: self.explainer_agent.execute(batch_input),
                self.explainer_agent.get_retry_policy(),
                context_name=f"Batch {batch.index + 1}",
                sleep=self._sleep,
                on_attempt=before_attempt
            )
        except RunCancelledError:
            raise
        except Exception as e:
            structured_logger.log_batch_failure(
                batch_index=batch.index,
                error_message=str(e),
                error_code=getattr(e, 'error_code', 'UNEXPECTED_ERROR'),
                status_code=extract_status_code(e),
                duration_ms=(time.time() - start_time) * 1000
            )
            raise

        structured_logger.log_batch_complete(
            batch_index=batch.index,
            duration_ms=(time.time() - start_time) * 1000,
            scene_count=len(output.scenes),
            context_summary=output.context_update
        )
        return output
