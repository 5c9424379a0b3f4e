"""Tests for the bounded-concurrency translation queue."""

from __future__ import annotations

import pytest

from translate_cms_ai.content.base import ContentFormat
from translate_cms_ai.database import JobStatus
from translate_cms_ai.errors import ProviderError, ProviderQuotaError


def quota() -> ProviderQuotaError:
    return ProviderQuotaError("429 Too Many Requests", provider="scripted")


async def test_job_runs_to_completion(db, make_queue, new_job):
    progress = []
    queue = make_queue(progress_callback=lambda job_id, value, message: progress.append(value))
    job_id = new_job(2)

    queue.add_job(job_id, 2, "fr")
    await queue.join()

    job = db.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.entity_title == "Block post"
    assert job.translated_title == "[fr] Block post"
    assert job.translated_content == "<p>Hello world</p>\n\n<h2>Title here</h2>"
    assert job.content_type == ContentFormat.GUTENBERG.value
    assert len(job.block_metadata.blocks) == 2
    assert job.tokens_used == 12
    assert progress == [10, 20, 40, 60, 80, 100]

    stages = [entry["stage"] for entry in reversed(db.get_logs(job_id=job_id))]
    assert stages == ["queue", "fetch", "extract", "translate_title", "translate_content", "save"]


async def test_concurrency_is_bounded(db, make_queue, new_job, scripted):
    observed = []
    translator = scripted(on_call=lambda: observed.append(len(db.get_jobs(JobStatus.PROCESSING))))
    queue = make_queue(translator, concurrency=2)
    job_ids = [new_job(1, lang) for lang in ("fr", "de", "nl", "es", "it")]

    for job_id, lang in zip(job_ids, ("fr", "de", "nl", "es", "it")):
        queue.add_job(job_id, 1, lang)
    assert queue.status() == {"queued": 3, "in_flight": 2, "delayed": 0}

    await queue.join()

    assert max(observed) == 2
    assert translator.calls == 5
    assert all(db.get_job(job_id).status == JobStatus.COMPLETED for job_id in job_ids)


async def test_jobs_start_in_fifo_order(db, make_queue, new_job, scripted):
    started = []
    translator = scripted(
        on_call=lambda: started.append(db.get_jobs(JobStatus.PROCESSING)[0].target_language)
    )
    queue = make_queue(translator, concurrency=1)

    for lang in ("fr", "de", "nl"):
        queue.add_job(new_job(1, lang), 1, lang)
    await queue.join()

    assert started == ["fr", "de", "nl"]


async def test_quota_errors_back_off_exponentially(db, make_queue, new_job, scripted, delays):
    translator = scripted(script=[quota(), quota(), None])
    queue = make_queue(translator, retry_base_delay=1.0)
    job_id = new_job(1)

    queue.add_job(job_id, 1, "fr")
    await queue.join()

    job = db.get_job(job_id)
    assert delays == [1.0, 2.0]
    assert sum(delays) >= 3.0
    assert translator.calls == 3
    assert job.status == JobStatus.COMPLETED
    assert job.retry_count == 2
    assert job.error_message is None

    warnings = db.get_logs(job_id=job_id, level="WARNING")
    assert [entry["context"]["attempt"] for entry in reversed(warnings)] == [1, 2]


async def test_quota_retries_are_capped(db, make_queue, new_job, scripted, delays):
    translator = scripted(script=[quota()] * 10)
    queue = make_queue(translator, max_retries=2)
    job_id = new_job(1)

    queue.add_job(job_id, 1, "fr")
    await queue.join()

    job = db.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert "Quota" in job.error_message
    assert delays == [1.0, 2.0]
    assert translator.calls == 3


async def test_retried_job_goes_to_the_head(db, make_queue, new_job, scripted):
    order = []
    translator = scripted(script=[quota()])
    translator.on_call = lambda: order.append(
        [job.target_language for job in db.get_jobs(JobStatus.PROCESSING)]
    )
    queue = make_queue(translator, concurrency=1)

    first = new_job(1, "fr")
    second = new_job(1, "de")
    queue.add_job(first, 1, "fr")
    queue.add_job(second, 1, "de")
    await queue.join()

    assert order == [["fr"], ["fr"], ["de"]]
    assert db.get_job(first).status == JobStatus.COMPLETED
    assert db.get_job(second).status == JobStatus.COMPLETED


async def test_other_provider_errors_fail_immediately(db, make_queue, new_job, scripted, delays):
    progress = []
    translator = scripted(script=[ProviderError("invalid model", provider="scripted")])
    queue = make_queue(translator, progress_callback=lambda job_id, value, message: progress.append(value))
    job_id = new_job(1)

    queue.add_job(job_id, 1, "fr")
    await queue.join()

    job = db.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error_message == "invalid model"
    assert translator.calls == 1
    assert delays == []
    assert progress[-1] == -1
    assert db.get_logs(job_id=job_id, level="ERROR")[0]["message"] == "invalid model"


async def test_missing_entity_fails_the_job(db, make_queue, new_job):
    queue = make_queue()
    job_id = new_job(99)

    queue.add_job(job_id, 99, "fr")
    await queue.join()

    job = db.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert "99" in job.error_message


async def test_terminal_jobs_are_skipped(db, make_queue, new_job, scripted):
    translator = scripted()
    queue = make_queue(translator)
    job_id = new_job(1, status=JobStatus.COMPLETED, translated_content="Done")

    queue.add_job(job_id, 1, "fr")
    await queue.join()

    assert translator.calls == 0
    assert db.get_job(job_id).translated_content == "Done"


async def test_deleted_job_stops_without_writing(db, make_queue, new_job, scripted):
    holder = {}
    translator = scripted(on_call=lambda: db.delete_job(holder["id"]))
    queue = make_queue(translator)
    holder["id"] = new_job(1)

    queue.add_job(holder["id"], 1, "fr")
    await queue.join()

    assert db.get_job(holder["id"]) is None
    assert translator.calls == 1


async def test_job_failed_elsewhere_is_not_overwritten(db, make_queue, new_job, scripted):
    holder = {}
    translator = scripted(
        on_call=lambda: db.update_job(holder["id"], status=JobStatus.FAILED, error_message="cancelled")
    )
    queue = make_queue(translator)
    holder["id"] = new_job(1)

    queue.add_job(holder["id"], 1, "fr")
    await queue.join()

    job = db.get_job(holder["id"])
    assert job.status == JobStatus.FAILED
    assert job.error_message == "cancelled"
    assert job.translated_content is None


async def test_recover_resubmits_unfinished_jobs(db, make_queue, new_job, scripted):
    translator = scripted()
    pending = new_job(1, "fr")
    interrupted = new_job(2, "de", status=JobStatus.PROCESSING, progress=40, retry_count=1)
    done = new_job(1, "nl", status=JobStatus.COMPLETED, translated_content="Klaar")
    queue = make_queue(translator)

    assert await queue.recover() == 2
    await queue.join()

    assert db.get_job(pending).status == JobStatus.COMPLETED
    assert db.get_job(interrupted).status == JobStatus.COMPLETED
    assert db.get_job(done).translated_content == "Klaar"
    assert translator.calls == 2


async def test_duplicate_add_is_ignored(make_queue, new_job, scripted):
    translator = scripted()
    queue = make_queue(translator, concurrency=1)
    job_id = new_job(1)

    queue.add_job(job_id, 1, "fr")
    queue.add_job(job_id, 1, "fr")
    assert queue.status()["in_flight"] == 1
    assert queue.status()["queued"] == 0

    await queue.join()
    assert translator.calls == 1


async def test_idle_state(make_queue, new_job):
    queue = make_queue()
    assert queue.is_idle

    queue.add_job(new_job(1), 1, "fr")
    assert not queue.is_idle

    await queue.join()
    assert queue.is_idle
    assert queue.status() == {"queued": 0, "in_flight": 0, "delayed": 0}


async def test_shutdown_leaves_records_resumable(db, make_queue, new_job):
    queue = make_queue(concurrency=1)
    running = new_job(1, "fr")
    waiting = new_job(1, "de")
    queue.add_job(running, 1, "fr")
    queue.add_job(waiting, 1, "de")

    await queue.shutdown()

    assert queue.is_idle
    assert db.get_job(waiting).status == JobStatus.PENDING
    assert db.get_job(running).status in (JobStatus.PENDING, JobStatus.PROCESSING)


def test_concurrency_must_be_positive(make_queue):
    with pytest.raises(ValueError):
        make_queue(concurrency=0)
