"""Tests for MediaService."""

import pytest

from repair_kernel.domain.dtos import MediaType
from repair_kernel.exceptions import ForbiddenError, JobNotFoundError, ValidationError


class TestAddMedia:

    def test_photo_and_video(self, make_job, media, advisor, deterministic_clock):
        job = make_job()
        photo = media.add_media(advisor, job.id, MediaType.PHOTO, "https://cdn.test/1.jpg", " Pads ")
        deterministic_clock.advance(5)
        video = media.add_media(advisor, job.id, "VIDEO", "http://cdn.test/2.mp4")

        assert photo.type is MediaType.PHOTO
        assert photo.caption == "Pads"
        assert video.caption is None
        assert [m.id for m in media.list_media(job.id)] == [photo.id, video.id]

    def test_tech_cannot_add(self, make_job, media, tech):
        job = make_job()
        with pytest.raises(ForbiddenError):
            media.add_media(tech, job.id, MediaType.PHOTO, "https://cdn.test/1.jpg")

    def test_bad_url(self, make_job, media, advisor):
        job = make_job()
        with pytest.raises(ValidationError):
            media.add_media(advisor, job.id, MediaType.PHOTO, "javascript:alert(1)")
        assert media.list_media(job.id) == []

    def test_foreign_job(self, make_job, media, foreign_advisor):
        job = make_job()
        with pytest.raises(JobNotFoundError):
            media.add_media(foreign_advisor, job.id, MediaType.PHOTO, "https://cdn.test/1.jpg")
