import os
from typing import Dict, Any, Optional
from loguru import logger

from mapping.models import QualityTier
from mapping.payload import SOURCES

TIER_EMOJI = {
    QualityTier.HOT: ":fire:",
    QualityTier.WARM: ":white_check_mark:",
    QualityTier.COLD: ":email:",
}


class SlackNotifier:
    """Slack integration for telling the sales team about new leads."""

    def __init__(self):
        self.token = os.getenv("SLACK_BOT_TOKEN")
        self.default_channel = os.getenv("SLACK_DEFAULT_CHANNEL", "#sales-leads")
        self.hot_channel = os.getenv("SLACK_HOT_LEADS_CHANNEL", "#hot-leads")

        if not self.token:
            logger.warning("No Slack token provided, using mock mode")

    def _post(self, channel: str, message: Dict[str, Any]) -> Optional[str]:
        from slack_sdk.web import WebClient
        from slack_sdk.errors import SlackApiError

        try:
            response = WebClient(token=self.token).chat_postMessage(
                channel=channel,
                text=message["text"],
                blocks=message["blocks"]
            )
        except SlackApiError as e:
            logger.error(f"Slack post to {channel} failed: {e.response.get('error')}")
            return None
        return response["ts"]

    def send_lead_notification(self, state: Dict[str, Any], channel: Optional[str] = None) -> Optional[str]:
        """
        Post a summary of a processed lead.

        Args:
            state: Lead processing state
            channel: Slack channel (optional, uses default if not specified)

        Returns:
            Slack message timestamp or None if failed
        """
        if not self.token:
            logger.info("Mock mode: would send Slack notification")
            return "mock_timestamp_123"

        target_channel = channel or self.default_channel
        message_ts = self._post(target_channel, self._build_lead_message(state))
        if message_ts:
            logger.info(f"Slack notification sent to {target_channel}: {message_ts}")
        return message_ts

    def send_hot_lead_alert(self, state: Dict[str, Any], channel: Optional[str] = None) -> Optional[str]:
        """Post an @here alert for a hot lead to the hot leads channel."""
        if not self.token:
            logger.info("Mock mode: would send hot lead alert")
            return "mock_alert_timestamp_456"

        target_channel = channel or self.hot_channel
        message_ts = self._post(target_channel, self._build_hot_lead_message(state))
        if message_ts:
            logger.info(f"Hot lead alert sent to {target_channel}: {message_ts}")
        return message_ts

    def _build_lead_message(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """Build Slack message for lead notification."""
        submission = state["submission"]
        score = state["score"]
        contact = submission.contact
        business = submission.attributes.get("business_name") or "Unknown"
        emoji = TIER_EMOJI[score.quality_tier]

        text = f"{emoji} New {score.quality_tier.value} lead: {contact.full_name} from {business}"

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{emoji} New Lead: {contact.full_name}"
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Email:*\n{contact.email}"},
                    {"type": "mrkdwn", "text": f"*Business:*\n{business}"},
                    {"type": "mrkdwn", "text": f"*Form:*\n{SOURCES[submission.form_kind]}"},
                    {"type": "mrkdwn", "text": f"*Score:*\n{score.numeric_score}/100 ({score.quality_tier.value})"},
                ]
            },
        ]

        context = [f"CRM contact: {state.get('crm_contact_id') or 'not synced'}"]
        unmapped = state.get("unmapped") or []
        if unmapped:
            context.append(f"{len(unmapped)} fields had no CRM match")
        if state.get("warning"):
            context.append(state["warning"])
        blocks.append({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": " | ".join(context)}]
        })

        return {"text": text, "blocks": blocks}

    def _build_hot_lead_message(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """Build hot lead alert message."""
        submission = state["submission"]
        score = state["score"]
        contact = submission.contact

        text = f":rotating_light: HOT LEAD: {contact.full_name} ({contact.email}) scored {score.numeric_score}"

        blocks = [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"<!here> *Hot lead* from the {SOURCES[submission.form_kind]}"
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Name:*\n{contact.full_name}"},
                    {"type": "mrkdwn", "text": f"*Phone:*\n{contact.phone or 'n/a'}"},
                    {"type": "mrkdwn", "text": f"*Score:*\n{score.numeric_score}/100"},
                    {"type": "mrkdwn", "text": f"*Plan:*\n{submission.attributes.get('selected_plan') or 'n/a'}"},
                ]
            },
        ]

        return {"text": text, "blocks": blocks}


# Global Slack notifier instance
slack_notifier = SlackNotifier()


def send_lead_notification(state: Dict[str, Any], channel: Optional[str] = None) -> Optional[str]:
    """Send lead notification using the global Slack notifier."""
    return slack_notifier.send_lead_notification(state, channel)


def send_hot_lead_alert(state: Dict[str, Any], channel: Optional[str] = None) -> Optional[str]:
    """Send hot lead alert using the global Slack notifier."""
    return slack_notifier.send_hot_lead_alert(state, channel)
