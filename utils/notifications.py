import logging
from dataclasses import dataclass, asdict
from typing import Optional

import requests

logger = logging.getLogger(__name__)

CHAPTER_UNLOCKED = "chapter_unlocked"
SECTION_UNLOCKED = "section_unlocked"
MODULE_UNLOCKED = "module_unlocked"
COURSE_UNLOCKED = "course_unlocked"
COURSE_COMPLETED = "course_completed"

EVENT_SOURCE = "progression_engine"


@dataclass(frozen=True)
class RewardEvent:
    user_id: int
    roadmap_course_id: int
    type: str
    title: str
    body: str
    module_week: Optional[int] = None
    section_id: Optional[int] = None
    content_ref_id: Optional[int] = None
    action_url: Optional[str] = None
    source: str = EVENT_SOURCE

    def to_payload(self):
        data = asdict(self)
        return {
            "userId": data["user_id"],
            "roadmapCourseId": data["roadmap_course_id"],
            "moduleWeek": data["module_week"],
            "sectionId": data["section_id"],
            "contentRefId": data["content_ref_id"],
            "title": data["title"],
            "body": data["body"],
            "actionUrl": data["action_url"],
            "type": data["type"],
            "source": data["source"],
        }


def course_action_url(roadmap_course_id, module_week=None, section_id=None):
    url = f"/courses/{roadmap_course_id}"
    if module_week is not None:
        url += f"?moduleWeek={module_week}"
        if section_id is not None:
            url += f"&sectionId={section_id}"
    return url


class RewardNotifier:
    """Best-effort HTTP client for the reward collaborator.

    Delivery failures are logged and dropped; they never reach the caller.
    """

    def __init__(self, base_url=None, timeout=3, http=None):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(config.get("REWARD_SERVICE_URL"), timeout=config.get("REWARD_SERVICE_TIMEOUT", 3))

    def dispatch(self, events):
        delivered = 0
        for event in events:
            if self.send(event):
                delivered += 1
        return delivered

    def send(self, event):
        if not self.base_url:
            logger.debug(f"Reward service not configured, dropping {event.type} for user {event.user_id}")
            return False

        url = f"{self.base_url}/notifications"
        try:
            response = self.http.post(url, json=event.to_payload(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Reward notification {event.type} for user {event.user_id} failed: {e}")
            return False

        logger.debug(f"Reward notification {event.type} sent for user {event.user_id}")
        return True
