import io
import logging

from PIL import Image, UnidentifiedImageError

from download.fetcher import FetchError
from metadata.naming import thumbnail_filename

logger = logging.getLogger(__name__)


def _validate_image_blob(data, *, label):
    if not data:
        raise FetchError(f"empty thumbnail payload for {label}")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise FetchError(f"thumbnail for {label} is not a decodable image: {exc}") from exc


def download_thumbnail(video, fetcher):
    if not video.thumbnail:
        raise FetchError(f"no thumbnail url for {video.video_id}")
    data = fetcher.get_bytes(video.thumbnail)
    _validate_image_blob(data, label=video.video_id)
    target = video.path / thumbnail_filename(video.video_id, video.title)
    target.write_bytes(data)
    logger.debug("[%s] thumbnail written bytes=%d", video.video_id, len(data))
    return target
