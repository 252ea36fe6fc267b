"""
Scene image rendering through an OpenAI-compatible images endpoint.

Rendering runs after the turn response has been sent. A missing image is a
normal outcome: every failure here is logged and turned into None.
"""

import base64
import binascii
from typing import Optional

import requests

from taleforge import prompts
from taleforge.engine.lifecycle import AdventureLifecycle
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)


class SceneRenderer:
    """Turns a visual prompt into image bytes"""

    def __init__(
        self,
        api_base: str,
        api_key: str,
        model: str,
        timeout: float = 120.0,
        size: str = "1024x1024",
    ):
        self.base_url = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.size = size
        self.images_url = f"{self.base_url}/images/generations"

        logger.info(f"Initialized SceneRenderer: model='{model}', url='{self.images_url}'")

    def render(self, visual_prompt: str) -> Optional[bytes]:
        """
        Render one scene.

        Args:
            visual_prompt: Scene description produced by the narrator

        Returns:
            Image bytes, or None if rendering failed
        """
        if not visual_prompt or not visual_prompt.strip():
            return None

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = requests.post(
                self.images_url,
                json={
                    "model": self.model,
                    "prompt": prompts.SCENE_IMAGE_STYLE.format(prompt=visual_prompt),
                    "n": 1,
                    "size": self.size,
                    "response_format": "b64_json",
                },
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()

            # Response format: {"data": [{"b64_json": "..."}]}
            encoded = response.json()["data"][0]["b64_json"]
            image = base64.b64decode(encoded)
            logger.debug(f"Rendered scene ({round(len(image) / 1024)}KB)")
            return image

        except requests.exceptions.RequestException as e:
            logger.warning(f"Scene render request failed: {e}")
        except (KeyError, IndexError, TypeError, ValueError, binascii.Error) as e:
            logger.warning(f"Scene render returned no image: {e}")
        return None


def render_and_attach(
    renderer: SceneRenderer,
    lifecycle: AdventureLifecycle,
    adventure_id: str,
    visual_prompt: str,
    turn_number: int,
) -> bool:
    """
    Background task: render the scene for `turn_number` and store it.

    The image is dropped if the adventure was deleted, restarted or advanced
    while rendering.
    """
    image = renderer.render(visual_prompt)
    if image is None:
        return False

    attached = lifecycle.attach_scene_image(
        adventure_id, base64.b64encode(image).decode("ascii"), turn_number
    )
    if not attached:
        logger.info(
            f"Discarded scene for {adventure_id} turn {turn_number}; adventure moved on",
            extra={"component": "TURN", "adventure_id": adventure_id},
        )
    return attached
