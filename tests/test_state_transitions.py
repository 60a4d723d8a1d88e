"""State transition tests for GenerationTask model.

Tests focus on validating the task lifecycle state machine:
- Valid transitions between states
- Invalid transitions are rejected with clear error messages
- Terminal states are never left except by resubmitting a failed task
"""

import pytest

from petsanta.core.config import MAX_RETRY_COUNT
from petsanta.models.generation_task import GenerationTask, InvalidStateTransition, TaskStatus


def make_task(**overrides) -> GenerationTask:
    values = {
        "user_id": "user_1",
        "original_image_url": "https://uploads.test/dog.png",
        "prompt": "A dog in a santa suit",
        "style": "santa-suit",
        "provider_task_id": "kie_task_1",
    }
    values.update(overrides)
    return GenerationTask(**values)


def test_new_task_defaults():
    """New task starts waiting with default parameters and the generation cost."""
    task = make_task()

    assert task.status == TaskStatus.WAITING
    assert task.aspect_ratio == "1:1"
    assert task.resolution == "1K"
    assert task.output_format == "png"
    assert task.credits_used == 20
    assert task.retry_count == 0
    assert task.completed_at is None
    assert not task.is_terminal


def test_valid_state_transitions():
    """Validates the happy path: waiting -> processing -> completed."""
    task = make_task()

    task.mark_processing()
    assert task.status == TaskStatus.PROCESSING

    # Repeated pending deliveries keep the task processing
    task.mark_processing()
    assert task.status == TaskStatus.PROCESSING

    task.mark_completed("https://blob.test/out.png")
    assert task.status == TaskStatus.COMPLETED
    assert task.generated_image_url == "https://blob.test/out.png"
    assert task.completed_at is not None
    assert task.error_message is None
    assert task.is_terminal


def test_waiting_can_complete_directly():
    task = make_task()

    task.mark_completed("https://blob.test/out.png")

    assert task.status == TaskStatus.COMPLETED


def test_mark_failed_sets_error_and_clears_image():
    task = make_task()

    task.mark_failed("quota exceeded")

    assert task.status == TaskStatus.FAILED
    assert task.error_message == "quota exceeded"
    assert task.generated_image_url is None
    assert task.completed_at is None
    assert task.can_retry


@pytest.mark.parametrize("terminal", [TaskStatus.COMPLETED, TaskStatus.FAILED])
def test_terminal_states_reject_status_updates(terminal):
    """Completed and failed tasks cannot be advanced by late deliveries."""
    task = make_task(status=terminal)

    with pytest.raises(InvalidStateTransition, match="terminal state"):
        task.mark_processing()
    with pytest.raises(InvalidStateTransition, match="terminal state"):
        task.mark_completed("https://blob.test/late.png")
    with pytest.raises(InvalidStateTransition, match="terminal state"):
        task.mark_failed("late failure")

    assert task.status == terminal


def test_mark_completed_requires_url():
    task = make_task()

    with pytest.raises(ValueError, match="generated_image_url"):
        task.mark_completed("")


def test_mark_failed_requires_message():
    task = make_task()

    with pytest.raises(ValueError, match="error_message"):
        task.mark_failed("")


def test_resubmit_resets_failed_task():
    """Resubmission replaces the provider id and clears the failure."""
    task = make_task(status=TaskStatus.FAILED, error_message="boom", provider_response={"x": 1})

    task.mark_resubmitted("kie_task_2")

    assert task.status == TaskStatus.WAITING
    assert task.provider_task_id == "kie_task_2"
    assert task.error_message is None
    assert task.provider_response is None
    assert task.retry_count == 1


def test_resubmit_requires_failed_state():
    task = make_task(status=TaskStatus.COMPLETED)

    with pytest.raises(InvalidStateTransition, match="must be in failed state"):
        task.mark_resubmitted("kie_task_2")


def test_resubmit_rejected_at_retry_limit():
    task = make_task(status=TaskStatus.FAILED, retry_count=MAX_RETRY_COUNT)

    assert not task.can_retry
    with pytest.raises(InvalidStateTransition, match="retry limit"):
        task.mark_resubmitted("kie_task_2")
    assert task.retry_count == MAX_RETRY_COUNT
