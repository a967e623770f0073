"""
Daily task pools, five per rank, rotated by calendar day.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class DailyTask:
    id: str
    title: str
    description: str
    xpReward: int
    action: Optional[str] = None


def _pool(prefix: str, xp: int, items) -> List[DailyTask]:
    return [
        DailyTask(
            id=f"{prefix}-{i}",
            title=title,
            description=description,
            action=action,
            xpReward=xp,
        )
        for i, (title, description, action) in enumerate(items, start=1)
    ]


DAILY_TASKS_BY_RANK: Dict[str, List[DailyTask]] = {
    "Recruit": _pool("recruit", 50, [
        ("Open Automations Tab Today",
         "Navigate to the Automations tab and explore available automations.", "open_automations"),
        ("View Any 1 Automation Card",
         "Click on any automation card to view its details.", "view_automation"),
        ("Open the Support Tab",
         "Visit the Support tab to see how to get help.", "open_support"),
        ("Open Your Referral Link Page",
         "View your referral link page (view page, not copy link).", "view_referral_link"),
        ("Open Overview and Check Today's XP",
         "Check your XP progress for today in the Overview tab.", "check_xp"),
    ]),
    "Apprentice": _pool("apprentice", 100, [
        ("Open Automation Suggestions",
         "Visit the Automation Suggestions section.", "open_suggestions"),
        ("Read 1 Suggested Automation Idea",
         "Read through a suggested automation idea.", "read_suggestion"),
        ("Open Automations and Apply a Filter/Search",
         "Apply a filter or search in the Automations tab.", "filter_automations"),
        ("View Any Pricing Section",
         "View the pricing section of any automation.", "view_pricing"),
        ("Open Overview and Check XP Progress",
         "Check your overall XP progress in the Overview tab.", "check_xp"),
    ]),
    "Agent": _pool("agent", 150, [
        ("Open Scripts and Edit One Sentence",
         "Open the Sales Scripts tab and edit one sentence in any script.", "edit_script"),
        ("Open Deal Diary and Review Statuses",
         "Review deal statuses in the Deal Diary (no logging required).", "review_deals"),
        ("Preview Any Automation You Could Pitch",
         "Preview an automation that you could pitch to clients.", "preview_automation"),
        ("Check XP Progress in Overview",
         "Check your XP progress in the Overview tab.", "check_xp"),
        ("Open Support Tab to Review Ticket Flow",
         "Review the ticket flow in the Support tab.", "review_tickets"),
    ]),
    "Partner": _pool("partner", 250, [
        ("Open Earnings Tab and Review Your Month",
         "Review your monthly earnings in the Earnings tab.", "review_earnings"),
        ("Compare 2 Automations You Might Sell This Week",
         "Compare two automations you might pitch this week.", "compare_selling_options"),
        ("Open Script Variation and Improve One Line",
         "Improve one line in one of your sales script variations.", "improve_script"),
        ("Open Leaderboard and Check Your Rank Movement",
         "Check how your rank has moved on the leaderboard.", "check_rank_movement"),
        ("Open Overview and Note Today's XP Growth",
         "Note your XP growth for today in the Overview tab.", "note_xp_growth"),
    ]),
    "Verified": _pool("verified", 200, [
        ("Open Demo Client and Review Details",
         "Open a demo client and review their details.", "review_demo_client"),
        ("Review Any Automation Assigned to Demo Client",
         "Review automations assigned to your demo client.", "review_demo_automation"),
        ("Open Referral Code Page",
         "Open and review your referral code page.", "open_referral_code"),
        ("Open Automations and Review Requirements Section",
         "Review the requirements section of any automation.", "review_requirements"),
        ("Open Overview and Check Weekly Trend",
         "Check your weekly XP trend in the Overview tab.", "check_weekly_trend"),
    ]),
    "Partner Pro": _pool("partner-pro", 300, [
        ("Open Premium Automations and Review One Daily",
         "Review one premium automation daily.", "review_premium_automation"),
        ("Open Advanced Analytics and Review One Metric",
         "Review one advanced analytics metric.", "review_analytics"),
        ("Open Leaderboard and Study a Top Seller's Pattern",
         "Study the pattern of a top seller on the leaderboard.", "study_top_seller"),
        ("Open Earnings Tab and Forecast Next Month",
         "Forecast your earnings for next month.", "forecast_earnings"),
        ("Open Scripts and Practice High-Ticket Pitch",
         "Practice a high-ticket sales pitch in the Scripts tab.", "practice_pitch"),
    ]),
}
