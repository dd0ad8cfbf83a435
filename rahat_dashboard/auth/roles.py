"""
Role definitions — who acts on a Rahat case.

Two vocabularies exist side by side:

    SystemRole:  the coarse account role issued by the auth backend
                 ("user", "admin"); only governs admin tooling.
    RahatRole:   the domain role that decides which stage of the
                 relief workflow a user may act on.

The approval chain a case walks through:

    tehsildar → sdm → rahat-shakha → oic → additional-collector → collector

thana-incharge is attached at creation time and supplies inspection
documents; it never approves.
"""

from enum import Enum


class SystemRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class RahatRole(str, Enum):
    COLLECTOR = "collector"
    ADDITIONAL_COLLECTOR = "additional-collector"
    SDM = "sdm"
    TEHSILDAR = "tehsildar"
    THANA_INCHARGE = "thana-incharge"
    RAHAT_SHAKHA = "rahat-shakha"
    OIC = "oic"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").upper()


class WorkflowAction(str, Enum):
    FORWARD = "forward"
    APPROVE = "approve"
    REJECT = "reject"
    TERMINATE = "terminate"
    RELEASE_NOTICE = "release_notice"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").upper()


# Ordered approval stages; `closed` is terminal.
STAGE_DISPLAY_NAMES: dict[str, str] = {
    "tehsildar_approval": "Tehsildar Approval",
    "document_upload": "Document Upload",
    "sdm_review": "SDM Review",
    "rahat_shakha_approval": "Rahat Shakha Approval",
    "oic_approval": "OIC Approval",
    "additional_collector_approval": "Additional Collector Approval",
    "collector_approval": "Collector Approval",
    "closed": "Case Closed",
}


def stage_display_name(stage: str) -> str:
    """Human label for a stage key; unknown keys are title-cased."""
    if stage in STAGE_DISPLAY_NAMES:
        return STAGE_DISPLAY_NAMES[stage]
    return " ".join(word[:1].upper() + word[1:] for word in stage.split("_"))
