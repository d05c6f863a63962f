# lambdas/common/pricing.py
"""
Price, discount, scholarship and study-plan calculations for the landing-page campaigns.

Everything here is a pure function of its numeric inputs so the same numbers can be
shown on the page and re-checked server-side before a checkout session is created.
"""
import math
from decimal import Decimal, ROUND_HALF_UP

PLANS = {
    "basic": {"duration": "1month", "price": 49},
    "standard": {"duration": "3months", "price": 129},
    "full": {"duration": "6months", "price": 199},
    "premium": {"duration": "12months", "price": 299},
}

TEAM_FULL_6_MONTHS_PRICE = 299
TEAM_MIN_MEMBERS = 2
TEAM_MAX_MEMBERS = 5
INDIVIDUAL_FULL_PRICE = 199

SCHOLARSHIP_BASE_PRICE = 199  # 3-month full access
MAX_SCHOLARSHIP_PERCENT = 75
FINANCIAL_NEED_BONUS = {"High": 25, "Medium": 15, "Low": 5}

PERSONALIZED_PLANS = {
    1: {"name": "Clinical Knowledge Gap", "duration": "3months", "price": 179},
    2: {"name": "Theory Fundamentals", "duration": "4months", "price": 199},
    3: {"name": "Time Management", "duration": "2months", "price": 149},
    4: {"name": "Comprehensive Review", "duration": "6months", "price": 249},
}

MOCK_EXAM_PRICES = {"free": 0, "premium": 29}

CLUSTER_DETAILS = {
    1: {
        "reason": "Your clinical case analysis needs improvement, but your theoretical knowledge is strong. "
                  "Focus on practical application.",
        "features": [
            "100+ Clinical Case Studies",
            "Step-by-Step Analysis Videos",
            "Weekly Mock Exams",
            "1-on-1 Mentorship Session",
            "Clinical Reasoning Workshop",
        ],
    },
    2: {
        "reason": "Your theoretical foundations need strengthening. "
                  "We'll build a solid knowledge base systematically.",
        "features": [
            "Comprehensive Theory Review",
            "Topic-by-Topic Video Lectures",
            "Daily Practice Quizzes",
            "Spaced Repetition System",
            "Theory Mastery Tracker",
        ],
    },
    3: {
        "reason": "You have the knowledge, but need to improve speed and exam strategy. "
                  "Let's optimize your performance.",
        "features": [
            "Timed Practice Sessions",
            "Test-Taking Strategies Workshop",
            "Speed Reading Techniques",
            "Question Prioritization Training",
            "50+ Speed Drills",
        ],
    },
    4: {
        "reason": "You need a comprehensive review across all areas. "
                  "Our full program will cover all your needs systematically.",
        "features": [
            "Full Access to All Resources",
            "Personalized Study Plan",
            "Weekly 1-on-1 Coaching",
            "Unlimited Mock Exams",
            "Performance Analytics Dashboard",
            "Study Group Access",
        ],
    },
}


class PricingError(ValueError):
    """Raised when calculator inputs are outside their valid range."""
    pass


def round_price(value: float) -> float:
    """Rounds half-up to cents."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_cents(amount: float) -> int:
    """Converts a major-unit amount to the integer minor units Stripe expects."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_valid_price(price) -> bool:
    return (
        isinstance(price, (int, float))
        and not isinstance(price, bool)
        and price >= 0
        and math.isfinite(price)
    )


def format_currency(amount: float, currency: str = "AUD") -> str:
    """Formats an amount the way the en-AU locale does, e.g. '$1,299.00'."""
    sign = "-" if amount < 0 else ""
    symbol = "$" if currency.upper() == "AUD" else f"{currency.upper()} "
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_percentage(value: float) -> str:
    return f"{int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))}%"


def _whole_percent(part: float, whole: float) -> int:
    if not whole:
        return 0
    return int(Decimal(str(part / whole * 100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_plan_pricing(plan_type: str) -> dict | None:
    plan = PLANS.get(plan_type)
    return dict(plan) if plan else None


def calculate_team_price(member_count: int) -> dict:
    """
    Splits the fixed team price among 2-5 members (leader included).

    Raises:
        PricingError: If the team size is out of range.
    """
    if member_count < TEAM_MIN_MEMBERS or member_count > TEAM_MAX_MEMBERS:
        raise PricingError(f"Team must have {TEAM_MIN_MEMBERS}-{TEAM_MAX_MEMBERS} members")

    total_price = TEAM_FULL_6_MONTHS_PRICE
    price_per_member = total_price / member_count

    return {
        "totalPrice": total_price,
        "memberCount": member_count,
        "pricePerMember": round_price(price_per_member),
        "savings": round_price((INDIVIDUAL_FULL_PRICE - price_per_member) * member_count),
        "formattedTotal": format_currency(total_price),
        "formattedPerMember": format_currency(price_per_member),
    }


def _attempts_bonus(attempts: int) -> int:
    if attempts >= 4:
        return 25
    if attempts >= 3:
        return 20
    if attempts >= 2:
        return 10
    return 0


def _score_bonus(last_score: float) -> int:
    if last_score < 40:
        return 30
    if last_score < 55:
        return 20
    if last_score < 65:
        return 15
    if last_score < 75:
        return 10
    return 0


def calculate_scholarship(attempts: int, last_score: float, financial_need: str) -> dict:
    """
    Scholarship percentage from exam attempts, last score and financial need.

    More attempts and lower scores earn a larger scholarship; the total is capped
    at MAX_SCHOLARSHIP_PERCENT.

    Raises:
        PricingError: If any input is outside its valid range.
    """
    if attempts < 1 or attempts > 10:
        raise PricingError("Invalid number of attempts")
    if not 0 <= last_score <= 100:
        raise PricingError("Score must be between 0 and 100")
    if financial_need not in FINANCIAL_NEED_BONUS:
        raise PricingError("Invalid financial need level")

    attempts_bonus = _attempts_bonus(attempts)
    score_bonus = _score_bonus(last_score)
    need_bonus = FINANCIAL_NEED_BONUS[financial_need]

    scholarship_percent = min(attempts_bonus + score_bonus + need_bonus, MAX_SCHOLARSHIP_PERCENT)

    base_price = SCHOLARSHIP_BASE_PRICE
    scholarship_amount = base_price * scholarship_percent / 100
    final_price = base_price - scholarship_amount

    return {
        "basePrice": base_price,
        "eligibilityScore": scholarship_percent,
        "scholarshipPercent": scholarship_percent,
        "scholarshipAmount": round_price(scholarship_amount),
        "finalPrice": round_price(final_price),
        "formattedBase": format_currency(base_price),
        "formattedScholarship": format_currency(scholarship_amount),
        "formattedFinal": format_currency(final_price),
        "breakdown": {
            "attemptsBonus": attempts_bonus,
            "scoreBonus": score_bonus,
            "needBonus": need_bonus,
        },
    }


def calculate_discount(original_price: float, discount_type: str, discount_value: float,
                       max_discount: float | None = None, min_purchase: float = 0) -> dict:
    """
    Applies a coupon to a price. The discount never exceeds the original price.

    Returns a dict with `valid` False and an `error` message when the coupon cannot apply.
    """
    if original_price < min_purchase:
        return {
            "valid": False,
            "error": f"Minimum purchase of {format_currency(min_purchase)} required",
        }

    if discount_type == "percentage":
        discount_amount = original_price * discount_value / 100
        if max_discount and discount_amount > max_discount:
            discount_amount = max_discount
    elif discount_type == "fixed_amount":
        discount_amount = discount_value
    else:
        return {"valid": False, "error": "Invalid discount type"}

    discount_amount = max(0, min(discount_amount, original_price))
    final_price = original_price - discount_amount

    return {
        "valid": True,
        "originalPrice": original_price,
        "discountType": discount_type,
        "discountValue": discount_value,
        "discountAmount": round_price(discount_amount),
        "finalPrice": round_price(final_price),
        "savingsPercent": _whole_percent(discount_amount, original_price),
        "formattedOriginal": format_currency(original_price),
        "formattedDiscount": format_currency(discount_amount),
        "formattedFinal": format_currency(final_price),
    }


def determine_cluster(clinical_score: int, theory_score: int, time_score: int,
                      exam_score: float = 65) -> dict:
    """
    Recommends one of four personalized study plans from a 1-10 self-assessment.

    Cluster 1: weak clinical, strong theory. Cluster 2: weak theory overall.
    Cluster 3: knowledgeable but slow. Cluster 4: comprehensive review (default).
    """
    if not all(1 <= score <= 10 for score in (clinical_score, theory_score, time_score)):
        raise PricingError("All scores must be between 1 and 10")
    if not math.isfinite(exam_score):
        raise PricingError("Exam score must be a finite number")

    avg_score = (clinical_score + theory_score + time_score) / 3

    if clinical_score <= 5 and theory_score >= 6:
        cluster = 1
    elif theory_score <= 5 and avg_score < 6:
        cluster = 2
    elif time_score <= 5 and avg_score >= 6 and exam_score >= 60:
        cluster = 3
    else:
        cluster = 4

    return {
        "cluster": cluster,
        **PERSONALIZED_PLANS[cluster],
        "reason": CLUSTER_DETAILS[cluster]["reason"],
        "features": list(CLUSTER_DETAILS[cluster]["features"]),
    }


def calculate_savings(original_price: float, discounted_price: float) -> dict:
    savings_amount = original_price - discounted_price
    savings_percent = _whole_percent(savings_amount, original_price)
    return {
        "savingsAmount": round_price(savings_amount),
        "savingsPercent": savings_percent,
        "formattedSavings": format_currency(savings_amount),
        "formattedPercent": format_percentage(savings_percent),
    }
