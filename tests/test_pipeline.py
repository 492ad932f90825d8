"""Tests for the story build orchestrator.

WHY: The orchestrator owns the rules that matter most to users: a
final video is only produced when every segment rendered, clips are
joined in segment order, failures come back typed, and a rebuild
overwrites cleanly.

HOW: Story directories come from conftest.make_story(). FakeRunner
stands in for ffmpeg, records each call, and writes placeholder files
so clip existence checks behave as in production.

RULES:
- Async entry points are driven with asyncio.run()
- No ffmpeg is needed
"""

from __future__ import annotations

import asyncio

import pytest

from storyreel.errors import (
    ConcatenationError,
    IncompleteStoryError,
    InputError,
    PipelineError,
    RenderError,
    StoryNotFoundError,
    TranscriptParseError,
)
from storyreel.pipeline import PipelineState, StoryPipeline, resolve_story

from conftest import STORY_ID, FakeRunner, make_settings, make_story


def _build(pipeline: StoryPipeline, story_id=STORY_ID) -> str:
    return asyncio.run(pipeline.build(story_id))


class TestResolveStory:

    @pytest.mark.parametrize("story_id", [None, ""])
    def test_missing_id(self, stories_root, story_id):
        with pytest.raises(InputError) as info:
            resolve_story(stories_root, story_id, 3)
        assert info.value.public_message == "error. missing id"
        assert info.value.status_code == 400

    @pytest.mark.parametrize("story_id", ["../etc", "ABC123", "abc", "abc-123", "abc/def12", "abcdef\n"])
    def test_malformed_id(self, stories_root, story_id):
        with pytest.raises(InputError) as info:
            resolve_story(stories_root, story_id, 3)
        assert info.value.public_message == "error. invalid id"

    def test_unknown_id(self, stories_root):
        with pytest.raises(StoryNotFoundError) as info:
            resolve_story(stories_root, "zzzzzz999", 3)
        assert info.value.status_code == 404

    def test_known_id(self, stories_root):
        make_story(stories_root)
        story = resolve_story(stories_root, STORY_ID, 3)
        assert story.id == STORY_ID
        assert len(story.segments) == 3


class TestBuildSuccess:

    def test_returns_relative_final_path(self, stories_root, settings, fake_runner):
        make_story(stories_root)
        result = _build(StoryPipeline(settings, runner=fake_runner))
        assert result == "{}/final.mp4".format(STORY_ID)
        assert (stories_root / STORY_ID / "final.mp4").exists()

    def test_renders_every_segment_with_canonical_inputs(self, stories_root, settings, fake_runner):
        story_dir = make_story(stories_root)
        _build(StoryPipeline(settings, runner=fake_runner))

        calls = sorted(fake_runner.render_calls, key=lambda c: c["segment_index"])
        assert [c["segment_index"] for c in calls] == [1, 2, 3]
        for call in calls:
            i = call["segment_index"]
            assert call["image"] == story_dir / "{}.png".format(i)
            assert call["audio"] == story_dir / "{}.mp3".format(i)
            assert call["output"] == story_dir / "output_{}.mp4".format(i - 1)
            assert call["duration"] == "3.00"
            assert call["caption_filter"].count("drawtext=") == 4

    def test_concat_in_segment_order(self, stories_root, settings, fake_runner):
        story_dir = make_story(stories_root)
        _build(StoryPipeline(settings, runner=fake_runner))
        assert len(fake_runner.concat_calls) == 1
        clips, output = fake_runner.concat_calls[0]
        assert clips == [story_dir / "output_{}.mp4".format(i) for i in range(3)]
        assert output == story_dir / "final.mp4"

    def test_already_normalized_story(self, stories_root, settings, fake_runner):
        make_story(stories_root, raw=False)
        assert _build(StoryPipeline(settings, runner=fake_runner)).endswith("final.mp4")

    def test_rebuild_overwrites(self, stories_root, settings):
        make_story(stories_root)
        _build(StoryPipeline(settings, runner=FakeRunner()))
        runner = FakeRunner()
        result = _build(StoryPipeline(settings, runner=runner))
        assert result == "{}/final.mp4".format(STORY_ID)
        assert len(runner.render_calls) == 3
        assert len(runner.concat_calls) == 1

    def test_empty_transcript_renders_without_captions(self, stories_root, settings, fake_runner):
        make_story(stories_root, transcript={"duration": 2.0, "words": []})
        _build(StoryPipeline(settings, runner=fake_runner))
        assert all(c["caption_filter"] == "" for c in fake_runner.render_calls)
        assert all(c["duration"] == "2.00" for c in fake_runner.render_calls)

    @pytest.mark.parametrize("count", [1, 5])
    def test_segment_count_setting(self, stories_root, count):
        story_dir = make_story(stories_root, segment_count=count)
        runner = FakeRunner()
        _build(StoryPipeline(make_settings(stories_root, segment_count=count), runner=runner))
        clips, _ = runner.concat_calls[0]
        assert clips == [story_dir / "output_{}.mp4".format(i) for i in range(count)]


class TestBuildFailures:

    def test_invalid_id_has_no_side_effects(self, stories_root, settings, fake_runner):
        story_dir = make_story(stories_root)
        before = sorted(p.name for p in story_dir.iterdir())
        with pytest.raises(InputError):
            _build(StoryPipeline(settings, runner=fake_runner), "NOT VALID")
        assert sorted(p.name for p in story_dir.iterdir()) == before
        assert fake_runner.render_calls == []

    def test_missing_segment_fails_after_rendering_others(self, stories_root, settings, fake_runner):
        story_dir = make_story(stories_root, omit=[(2, "audio")])
        with pytest.raises(IncompleteStoryError) as info:
            _build(StoryPipeline(settings, runner=fake_runner))
        assert info.value.missing_segments == [2]
        assert sorted(c["segment_index"] for c in fake_runner.render_calls) == [1, 3]
        assert fake_runner.concat_calls == []
        assert not (story_dir / "final.mp4").exists()
        assert (story_dir / "output_0.mp4").exists()
        assert (story_dir / "output_2.mp4").exists()

    def test_render_failure_waits_for_other_segments(self, stories_root, settings):
        story_dir = make_story(stories_root)
        runner = FakeRunner(fail_segments=[1])
        with pytest.raises(RenderError) as info:
            _build(StoryPipeline(settings, runner=runner))
        assert info.value.segment_index == 1
        assert len(runner.render_calls) == 3
        assert runner.concat_calls == []
        assert not (story_dir / "final.mp4").exists()

    def test_first_failure_in_segment_order_is_raised(self, stories_root, settings):
        make_story(stories_root)
        runner = FakeRunner(fail_segments=[3, 2])
        with pytest.raises(RenderError) as info:
            _build(StoryPipeline(settings, runner=runner))
        assert info.value.segment_index == 2

    def test_bad_transcript(self, stories_root, settings, fake_runner):
        story_dir = make_story(stories_root, raw=False)
        (story_dir / "transcription-2.json").write_text("not json", encoding="utf-8")
        with pytest.raises(TranscriptParseError):
            _build(StoryPipeline(settings, runner=fake_runner))
        assert fake_runner.concat_calls == []

    def test_concat_failure(self, stories_root, settings):
        make_story(stories_root)
        with pytest.raises(ConcatenationError):
            _build(StoryPipeline(settings, runner=FakeRunner(fail_concat=True)))

    def test_unexpected_error_wrapped(self, stories_root, settings):
        make_story(stories_root)

        class BrokenRunner(FakeRunner):
            async def render_segment(self, *args, **kwargs):
                raise RuntimeError("kaboom")

        with pytest.raises(PipelineError, match="kaboom"):
            _build(StoryPipeline(settings, runner=BrokenRunner()))


class TestStateHook:

    def test_success_sequence(self, stories_root, settings, fake_runner):
        make_story(stories_root)
        seen = []
        _build(StoryPipeline(settings, runner=fake_runner, on_state=lambda sid, st: seen.append(st)))
        assert seen == [
            PipelineState.IDLE,
            PipelineState.NORMALIZING,
            PipelineState.RENDERING,
            PipelineState.CONCATENATING,
            PipelineState.DONE,
        ]

    def test_failure_ends_in_failed(self, stories_root, settings):
        make_story(stories_root, omit=[(1, "image")])
        seen = []
        pipeline = StoryPipeline(settings, runner=FakeRunner(), on_state=lambda sid, st: seen.append(st))
        with pytest.raises(IncompleteStoryError):
            _build(pipeline)
        assert seen[-1] is PipelineState.FAILED
        assert PipelineState.CONCATENATING not in seen

    def test_hook_errors_are_ignored(self, stories_root, settings, fake_runner):
        make_story(stories_root)

        def broken(story_id, state):
            raise ValueError("hook broke")

        pipeline = StoryPipeline(settings, runner=fake_runner, on_state=broken)
        assert _build(pipeline) == "{}/final.mp4".format(STORY_ID)

    def test_state_values_are_strings(self):
        assert PipelineState.RENDERING == "rendering"


class TestRebuild:

    def test_failed_rebuild_removes_previous_video(self, stories_root, settings):
        story_dir = make_story(stories_root)
        _build(StoryPipeline(settings, runner=FakeRunner()))
        assert (story_dir / "final.mp4").exists()

        (story_dir / "2.mp3").unlink()
        with pytest.raises(IncompleteStoryError):
            _build(StoryPipeline(settings, runner=FakeRunner()))
        assert not (story_dir / "final.mp4").exists()

    def test_render_failure_removes_previous_video(self, stories_root, settings):
        story_dir = make_story(stories_root, raw=False)
        (story_dir / "final.mp4").write_bytes(b"old video")
        with pytest.raises(RenderError):
            _build(StoryPipeline(settings, runner=FakeRunner(fail_segments=[3])))
        assert not (story_dir / "final.mp4").exists()

    def test_successful_rebuild_writes_new_video(self, stories_root, settings):
        story_dir = make_story(stories_root, raw=False)
        (story_dir / "final.mp4").write_bytes(b"old video")
        _build(StoryPipeline(settings, runner=FakeRunner()))
        assert (story_dir / "final.mp4").read_bytes() == b"final"
