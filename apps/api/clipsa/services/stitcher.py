"""Final video assembly from generated scene clips and the audio track."""

from __future__ import annotations

import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from clipsa.adapters.media.ffmpeg import MediaToolchain, build_concat_manifest
from clipsa.core.config import Settings
from clipsa.core.logging_safety import safe_log_url
from clipsa.errors import AssetDownloadFailure, MissingUnit
from clipsa.repositories.base import ProjectRecord, ProjectStore
from clipsa.repositories.blobs import BlobStore
from clipsa.schemas.generation import GenerationStatus, UnitType
from clipsa.schemas.project import ProjectAssets, ProjectStatus
from clipsa.services.output_resolution import require_output_url

logger = logging.getLogger(__name__)

MEDIA_PATH = "/api/media"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def media_url(base_url: str, blob_id: str) -> str:
    return f"{base_url.rstrip('/')}{MEDIA_PATH}/{blob_id}"


@dataclass(slots=True, frozen=True)
class StitchPlan:
    """Resolved asset URLs; ``scene_urls`` is in project timeline order."""

    scene_urls: list[tuple[str, str]]
    audio_url: str


class Stitcher:
    def __init__(
        self,
        *,
        store: ProjectStore,
        blobs: BlobStore,
        toolchain: MediaToolchain,
        http_client: httpx.Client,
        settings: Settings,
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._toolchain = toolchain
        self._http = http_client
        self._settings = settings

    def stitch(self, project_id: str) -> ProjectAssets | None:
        project = self._store.get_project(project_id)
        if project is None:
            logger.warning("stitch.project_missing project_id=%s", project_id)
            return None
        if project.status is not ProjectStatus.STITCHING:
            # Completed/failed projects and redelivered stitch jobs are no-ops.
            logger.info("stitch.skipped project_id=%s status=%s", project_id, project.status.value)
            return None

        logger.info("stitch.started project_id=%s scenes=%s", project_id, len(project.scenes))
        try:
            plan = self.plan(project)
            with tempfile.TemporaryDirectory(prefix=self._settings.stitch_tmp_prefix) as workspace:
                assets = self._assemble(project_id, plan, Path(workspace))
        except Exception as exc:
            logger.exception("stitch.failed project_id=%s", project_id)
            self._store.transition_project_status(project_id, ProjectStatus.FAILED, error=str(exc))
            raise

        completed = self._store.transition_project_status(
            project_id,
            ProjectStatus.COMPLETED,
            expected={ProjectStatus.STITCHING},
            assets=assets,
        )
        if not completed:
            logger.warning("stitch.completion_not_applied project_id=%s asset_id=%s", project_id, assets.final_asset_id)
            return None
        logger.info("stitch.completed project_id=%s asset_id=%s", project_id, assets.final_asset_id)
        return assets

    def plan(self, project: ProjectRecord) -> StitchPlan:
        """Resolve one clip per scene and the single audio track, or raise before any download."""
        if not project.scenes:
            raise MissingUnit(f"Project {project.id} has no scenes")

        succeeded = self._store.find_generations(project.id, UnitType.VIDEO, GenerationStatus.SUCCEEDED)
        by_scene = {unit.scene_id: unit for unit in succeeded if unit.scene_id is not None}

        scene_urls: list[tuple[str, str]] = []
        for scene in project.scenes:
            unit = by_scene.get(scene.id)
            if unit is None:
                raise MissingUnit(f"Missing output for scene {scene.id}")
            scene_urls.append((scene.id, require_output_url(unit.output, context=f"scene {scene.id}")))

        audio_units = self._store.find_generations(project.id, UnitType.AUDIO, GenerationStatus.SUCCEEDED)
        if not audio_units:
            raise MissingUnit(f"Missing audio output for project {project.id}")
        if len(audio_units) > 1:
            raise MissingUnit(f"Expected one audio output for project {project.id}, found {len(audio_units)}")
        audio_unit = audio_units[0]
        audio_url = require_output_url(audio_unit.output, context=f"audio of project {project.id}")
        return StitchPlan(scene_urls=scene_urls, audio_url=audio_url)

    def _assemble(self, project_id: str, plan: StitchPlan, workspace: Path) -> ProjectAssets:
        scene_paths: list[Path] = []
        for position, (scene_id, url) in enumerate(plan.scene_urls):
            target = workspace / f"{position:03d}_{_UNSAFE_FILENAME_CHARS.sub('_', scene_id)}.mp4"
            self._download(url, target)
            scene_paths.append(target)

        audio_path = workspace / "audio.mp3"
        self._download(plan.audio_url, audio_path)

        manifest_path = workspace / "videos.txt"
        manifest_path.write_text(build_concat_manifest(scene_paths), encoding="utf-8")

        merged_path = workspace / "merged.mp4"
        self._toolchain.concat(manifest_path, merged_path)

        final_path = workspace / "final.mp4"
        self._toolchain.mux(merged_path, audio_path, final_path)

        with final_path.open("rb") as stream:
            blob_id = self._blobs.store(
                stream,
                filename=f"video-{project_id}.mp4",
                metadata={"projectId": project_id},
                content_type="video/mp4",
            )
        return ProjectAssets(
            final_asset_id=blob_id,
            final_asset_url=media_url(self._settings.public_base_url, blob_id),
        )

    def _download(self, url: str, target: Path) -> None:
        logger.info("stitch.download url=%s target=%s", safe_log_url(url), target.name)
        try:
            with self._http.stream("GET", url) as response:
                response.raise_for_status()
                with target.open("wb") as fh:
                    for chunk in response.iter_bytes():
                        fh.write(chunk)
        except httpx.HTTPStatusError as exc:
            raise AssetDownloadFailure(
                f"Failed to download asset from {safe_log_url(url)}: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AssetDownloadFailure(
                f"Failed to download asset from {safe_log_url(url)}: {type(exc).__name__}"
            ) from exc


__all__ = ["MEDIA_PATH", "StitchPlan", "Stitcher", "media_url"]
