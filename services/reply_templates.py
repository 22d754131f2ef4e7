"""Outbound chat messages rendered in Telegram HTML parse mode."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from services.entitlement_service import UserStats
from services.lookup_client import LookupResult
from services.lookup_formatter import (
    CATEGORY_ADDRESS,
    CATEGORY_IDENTITY,
    CATEGORY_NAME,
    CATEGORY_PHONE,
    CATEGORY_REGION,
    FormattedLookup,
)
from services.markup import bold, code, escape_html, italic
from services.user_store import FREE_TRIAL_ALLOWANCE, UserRecord

PARSE_MODE_HTML = "HTML"

CALLBACK_GET_SUBSCRIPTION = "get_subscription"
CALLBACK_CHECK_SUBSCRIPTION = "check_subscription"
CALLBACK_BACK_TO_START = "back_to_start"

_CATEGORY_ICONS: Dict[str, str] = {
    CATEGORY_IDENTITY: "🆔",
    CATEGORY_NAME: "👤",
    CATEGORY_PHONE: "📱",
    CATEGORY_REGION: "📡",
    CATEGORY_ADDRESS: "🏠",
}
_DEFAULT_ICON = "➡️"


@dataclass(frozen=True)
class InlineButton:
    label: str
    url: Optional[str] = None
    callback_data: Optional[str] = None

    def to_telegram(self) -> Dict[str, str]:
        payload = {"text": self.label}
        if self.url:
            payload["url"] = self.url
        if self.callback_data:
            payload["callback_data"] = self.callback_data
        return payload


@dataclass
class OutboundMessage:
    """A reply for the transport to deliver to ``chat_id``."""

    chat_id: str
    text: str
    parse_mode: Optional[str] = PARSE_MODE_HTML
    buttons: List[List[InlineButton]] = field(default_factory=list)

    def reply_markup(self) -> Optional[Dict[str, Any]]:
        if not self.buttons:
            return None
        return {"inline_keyboard": [[button.to_telegram() for button in row] for row in self.buttons]}


@dataclass(frozen=True)
class AdminContact:
    chat_id: str
    username: str = "admin_username"

    @property
    def url(self) -> str:
        return f"tg://user?id={self.chat_id}"

    def contact_button(self, label: str = "💬 Contact Admin") -> InlineButton:
        return InlineButton(label=label, url=self.url)


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%Y-%m-%d")


# ----------------------------------------------------------------------
# Lookup flow
# ----------------------------------------------------------------------


def limit_reached_message(chat_id: str, admin: AdminContact) -> OutboundMessage:
    text = (
        f"🚫 {bold('Search Limit Reached!')}\n\n"
        "You have used your free search. To continue using this bot, please purchase a subscription.\n\n"
        f"💰 {bold('Subscription Plans:')}\n"
        "• Monthly: ₹99 (Unlimited searches)\n"
        "• Yearly: ₹999 (Unlimited searches + Priority support)\n\n"
        f"📞 {bold('Contact Admin to Purchase:')}\n"
        f"👤 Admin: @{escape_html(admin.username)}\n"
        f"💬 Chat ID: {code(escape_html(admin.chat_id))}\n\n"
        f"{italic('Send screenshot of payment to admin for instant activation!')}"
    )
    buttons = [
        [admin.contact_button()],
        [InlineButton(label="📋 Check Subscription", callback_data=CALLBACK_CHECK_SUBSCRIPTION)],
    ]
    return OutboundMessage(chat_id=chat_id, text=text, buttons=buttons)


def loading_message(chat_id: str) -> OutboundMessage:
    return OutboundMessage(chat_id=chat_id, text=f"⏳ {bold('Fetching information... Please wait.')}")


def lookup_error_message(chat_id: str, result: LookupResult) -> OutboundMessage:
    text = (
        f"❌ {bold('Error fetching information:')}\n"
        f"{escape_html(result.describe())}\n\n"
        "Please try again later or check the number."
    )
    return OutboundMessage(chat_id=chat_id, text=text)


def render_lookup_fields(formatted: FormattedLookup) -> str:
    """Render formatted lookup fields; callers handle the ``has_data=False`` case."""
    lines = [f"ℹ️ {bold('Flipcart Information')}"]
    for position, item_fields in enumerate(formatted.items(), start=1):
        lines.append("")
        lines.append(f"✨ {bold(f'Result {position}')} ✨")
        for entry in item_fields:
            icon = _CATEGORY_ICONS.get(entry.category, _DEFAULT_ICON)
            lines.append(f"{icon} {bold(escape_html(entry.label) + ':')} {code(escape_html(entry.value))}")
    return "\n".join(lines)


def no_data_text() -> str:
    return f"⚠️ {bold('No details found')} for this number or the information is incomplete."


def lookup_reply(
    chat_id: str,
    formatted: FormattedLookup,
    *,
    free_trial_consumed: bool,
    admin: AdminContact,
) -> OutboundMessage:
    text = render_lookup_fields(formatted) if formatted.has_data else no_data_text()
    if free_trial_consumed:
        text += (
            f"\n\n🎉 {bold('Free search used!')} Contact admin for unlimited access: "
            f"{code(escape_html(admin.chat_id))}"
        )
    return OutboundMessage(chat_id=chat_id, text=text)


def invalid_number_message(chat_id: str) -> OutboundMessage:
    text = (
        f"❌ {bold('Invalid mobile number format!')}\n\n"
        "Please enter a 10-digit mobile number starting with 6-9.\n\n"
        f"{bold('Example:')} {code('/info 9876543210')}"
    )
    return OutboundMessage(chat_id=chat_id, text=text)


def service_unavailable_message(chat_id: str) -> OutboundMessage:
    text = (
        f"🛠 {bold('Service temporarily unavailable.')}\n\n"
        "Your account data could not be loaded. Please try again later."
    )
    return OutboundMessage(chat_id=chat_id, text=text)


def critical_error_message(chat_id: str) -> OutboundMessage:
    return OutboundMessage(chat_id=chat_id, text=f"🛑 {bold('Critical Error!')}\n\nSomething unexpected went wrong.")


def unknown_input_message(chat_id: str) -> OutboundMessage:
    text = (
        f"❓ {bold('Unknown command or invalid input')}\n\n"
        "Use /help to see available commands or send a valid 10-digit number."
    )
    return OutboundMessage(chat_id=chat_id, text=text)


# ----------------------------------------------------------------------
# User commands
# ----------------------------------------------------------------------


def _start_buttons(admin: AdminContact) -> List[List[InlineButton]]:
    return [
        [InlineButton(label="💰 Get Subscription", callback_data=CALLBACK_GET_SUBSCRIPTION)],
        [admin.contact_button("📞 Contact Admin")],
    ]


def welcome_message(chat_id: str, record: UserRecord, admin: AdminContact) -> OutboundMessage:
    lines = [
        f"🤖 {bold('Welcome to Flipcart Info Bot!')}",
        "",
        "This bot helps you get information from the Flipcart store using mobile numbers.",
        "",
        f"🆓 {bold('Free Trial:')} {record.free_trials_used}/{FREE_TRIAL_ALLOWANCE} searches used",
    ]
    if record.subscription_active:
        lines.append(f"✅ {bold('Subscribed')} - Unlimited searches!")
    lines.extend(
        [
            "",
            bold("Commands:"),
            "/start - Show this welcome message",
            "/help - Show help information",
            "/info &lt;mobile_number&gt; - Get Flipcart information",
            "/subscription - Check your subscription status",
            "",
            bold("Example:"),
            code("/info 9876543210"),
            "",
            "You can also send a 10-digit number directly. 📱",
        ]
    )
    return OutboundMessage(chat_id=chat_id, text="\n".join(lines), buttons=_start_buttons(admin))


def help_message(chat_id: str, *, admin: AdminContact, api_base_url: str) -> OutboundMessage:
    text = (
        f"📋 {bold('Help - How to use this bot:')}\n\n"
        f"{bold('1. Get Information:')}\n"
        f"Send: {code('/info 9876543210')}\n"
        f"Or just: {code('9876543210')}\n\n"
        f"{bold('2. Mobile Number Format:')}\n"
        f"- Must be exactly {bold('10 digits')}\n"
        f"- Should start with {bold('6, 7, 8, or 9')}\n"
        f"- Example: {code('9876543210')}\n\n"
        f"{bold('3. Subscription:')}\n"
        f"- New users get {bold('1 free search')}\n"
        "- Purchase subscription for unlimited access\n"
        f"- Contact admin: {code(escape_html(admin.chat_id))}\n\n"
        f"{bold('4. Commands:')}\n"
        "/start - Welcome message\n"
        "/help - This help message\n"
        "/info &lt;number&gt; - Get info for that number\n"
        "/subscription - Check subscription status\n\n"
        f"{italic('API URL: ' + code(escape_html(api_base_url)))}"
    )
    return OutboundMessage(chat_id=chat_id, text=text)


def subscription_status_message(chat_id: str, record: UserRecord, admin: AdminContact) -> OutboundMessage:
    lines = [
        f"📊 {bold('Your Subscription Status')}",
        "",
        f"👤 {bold('User ID:')} {code(escape_html(record.id))}",
        f"🆓 {bold('Free Searches:')} {record.free_trials_used}/{FREE_TRIAL_ALLOWANCE} used",
        f"📈 {bold('Total Searches:')} {record.total_lookups}",
        f"📅 {bold('Join Date:')} {_format_date(record.joined_at)}",
        "",
    ]
    if record.subscription_active:
        lines.extend(
            [
                f"✅ {bold('Status:')} Active Subscriber",
                f"⏰ {bold('Expires:')} {_format_date(record.subscription_expires_at)}",
                f"🔥 {bold('Searches:')} Unlimited",
            ]
        )
    else:
        lines.extend(
            [
                f"❌ {bold('Status:')} Free User",
                f"💰 {bold('Upgrade:')} Contact admin for subscription",
            ]
        )
    return OutboundMessage(chat_id=chat_id, text="\n".join(lines), buttons=_start_buttons(admin))


def subscription_plans_message(chat_id: str, admin: AdminContact) -> OutboundMessage:
    text = (
        f"💰 {bold('Subscription Plans')}\n\n"
        f"🔥 {bold('Monthly Plan - ₹99')}\n"
        "• Unlimited searches\n"
        "• 30 days validity\n"
        "• Fast support\n\n"
        f"⭐ {bold('Yearly Plan - ₹999')}\n"
        "• Unlimited searches\n"
        "• 365 days validity\n"
        "• Priority support\n"
        "• Save ₹189!\n\n"
        f"📞 {bold('How to Purchase:')}\n"
        f"1. Contact admin: {code(escape_html(admin.chat_id))}\n"
        "2. Send payment screenshot\n"
        "3. Get instant activation!\n\n"
        f"💳 {bold('Payment Methods:')}\n"
        "• UPI, PhonePe, GPay\n"
        "• Bank Transfer\n"
        "• Paytm"
    )
    buttons = [
        [admin.contact_button("📞 Contact Admin")],
        [InlineButton(label="🔙 Back", callback_data=CALLBACK_BACK_TO_START)],
    ]
    return OutboundMessage(chat_id=chat_id, text=text, buttons=buttons)


def subscription_check_message(chat_id: str, record: UserRecord) -> OutboundMessage:
    header = f"📊 {bold('Subscription Status')}\n\n"
    if record.subscription_active:
        body = f"✅ {bold('Active Subscription')}\nExpires: {_format_date(record.subscription_expires_at)}"
    else:
        body = (
            f"❌ {bold('No Active Subscription')}\n"
            f"Free searches: {record.free_trials_used}/{FREE_TRIAL_ALLOWANCE} used"
        )
    buttons = [
        [InlineButton(label="💰 Get Subscription", callback_data=CALLBACK_GET_SUBSCRIPTION)],
        [InlineButton(label="🔙 Back", callback_data=CALLBACK_BACK_TO_START)],
    ]
    return OutboundMessage(chat_id=chat_id, text=header + body, buttons=buttons)


# ----------------------------------------------------------------------
# Admin commands
# ----------------------------------------------------------------------


def unauthorized_message(chat_id: str) -> OutboundMessage:
    return OutboundMessage(chat_id=chat_id, text="❌ Unauthorized access!", parse_mode=None)


def admin_panel_message(chat_id: str, stats: UserStats) -> OutboundMessage:
    text = (
        f"👑 {bold('Admin Panel')}\n\n"
        f"📊 {bold('Statistics:')}\n"
        f"• Total Users: {stats.total}\n"
        f"• Subscribed Users: {stats.subscribed}\n"
        f"• Free Users: {stats.free}\n\n"
        f"{bold('Commands:')}\n"
        "/adduser &lt;user_id&gt; &lt;days&gt; - Add subscription\n"
        "/removeuser &lt;user_id&gt; - Remove subscription\n"
        "/userinfo &lt;user_id&gt; - Get user info (or /usrinfo)\n\n"
        f"{bold('Examples:')}\n"
        f"{code('/adduser 123456789 30')}\n"
        f"{code('/usrinfo 123456789')}"
    )
    return OutboundMessage(chat_id=chat_id, text=text)


def subscription_granted_ack(chat_id: str, user_id: str, days: int) -> OutboundMessage:
    return OutboundMessage(
        chat_id=chat_id,
        text=f"✅ Added {days} days subscription for user {user_id}",
        parse_mode=None,
    )


def subscription_activated_notice(record: UserRecord) -> OutboundMessage:
    text = (
        f"🎉 {bold('Subscription Activated!')}\n\n"
        f"You now have unlimited searches until {_format_date(record.subscription_expires_at)}.\n\n"
        "Thank you for subscribing! 🙏"
    )
    return OutboundMessage(chat_id=record.id, text=text)


def subscription_revoked_ack(chat_id: str, user_id: str, *, found: bool) -> OutboundMessage:
    text = f"✅ Removed subscription for user {user_id}" if found else f"⚠️ User {user_id} not found"
    return OutboundMessage(chat_id=chat_id, text=text, parse_mode=None)


def user_info_message(chat_id: str, record: UserRecord) -> OutboundMessage:
    text = (
        f"👤 {bold('User Information')}\n\n"
        f"{bold('User ID:')} {code(escape_html(record.id))}\n"
        f"{bold('Username:')} {escape_html(record.handle) or 'N/A'}\n"
        f"{bold('First Name:')} {escape_html(record.display_name) or 'N/A'}\n"
        f"{bold('Join Date:')} {_format_date(record.joined_at)}\n"
        f"{bold('Free Searches Used:')} {record.free_trials_used}/{FREE_TRIAL_ALLOWANCE}\n"
        f"{bold('Total Searches:')} {record.total_lookups}\n"
        f"{bold('Subscribed:')} {'✅ Yes' if record.subscription_active else '❌ No'}\n"
        f"{bold('Subscription Expiry:')} {_format_date(record.subscription_expires_at)}"
    )
    return OutboundMessage(chat_id=chat_id, text=text)


__all__ = [
    "AdminContact",
    "CALLBACK_BACK_TO_START",
    "CALLBACK_CHECK_SUBSCRIPTION",
    "CALLBACK_GET_SUBSCRIPTION",
    "InlineButton",
    "OutboundMessage",
    "PARSE_MODE_HTML",
    "admin_panel_message",
    "critical_error_message",
    "help_message",
    "invalid_number_message",
    "limit_reached_message",
    "loading_message",
    "lookup_error_message",
    "lookup_reply",
    "no_data_text",
    "render_lookup_fields",
    "service_unavailable_message",
    "subscription_activated_notice",
    "subscription_check_message",
    "subscription_granted_ack",
    "subscription_plans_message",
    "subscription_revoked_ack",
    "subscription_status_message",
    "unauthorized_message",
    "unknown_input_message",
    "user_info_message",
    "welcome_message",
]
