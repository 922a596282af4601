"""Fixed-payment loan calculations shared by the simulator and account opening"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from dateutil.relativedelta import relativedelta

CENT = Decimal('0.01')

DEFAULT_BASE_INTEREST_RATE = Decimal('15')
DEFAULT_EFFORT_RATE = Decimal('30')
PROJECT_TYPE_RATE_ADJUSTMENTS = {
    'cattle': Decimal('-2'),
    'corn': Decimal('-1'),
    'cassava': Decimal('0'),
    'horticulture': Decimal('1'),
    'poultry': Decimal('2'),
    'other': Decimal('3'),
}

def _decimal(value):
    return value if isinstance(value, Decimal) else Decimal(str(value))

def _round(value):
    return value.quantize(CENT, rounding=ROUND_HALF_UP)

def resolve_interest_rate(project_type, program=None, base_rate=None, adjustments=None):
    """Annual rate: the program's rate, else the base rate adjusted by project risk"""
    if program is not None:
        return _decimal(program.interest_rate)

    base_rate = _decimal(base_rate if base_rate is not None else DEFAULT_BASE_INTEREST_RATE)
    adjustments = adjustments if adjustments is not None else PROJECT_TYPE_RATE_ADJUSTMENTS
    adjustment = adjustments.get(project_type, adjustments.get('other', 0))
    return base_rate + _decimal(adjustment)

def resolve_effort_rate(program=None, default=None):
    if program is not None and program.effort_rate is not None:
        return _decimal(program.effort_rate)
    return _decimal(default if default is not None else DEFAULT_EFFORT_RATE)

def calculate_monthly_payment(principal, term, annual_rate):
    """Fixed monthly installment for a loan, rounded half-up to the cent

    Falls back to straight division of the principal when the rate is zero.
    """
    principal = _decimal(principal)
    annual_rate = _decimal(annual_rate)
    if term <= 0:
        raise ValueError('Term must be at least one month')
    if principal <= 0:
        raise ValueError('Principal must be positive')

    monthly_rate = annual_rate / Decimal('100') / Decimal('12')
    if monthly_rate == 0:
        return _round(principal / Decimal(term))

    # Convert to float for power calculation, then back to Decimal
    mr_float = float(monthly_rate)
    power_calc = ((1 + mr_float) ** term) / (((1 + mr_float) ** term) - 1)
    return _round(principal * monthly_rate * Decimal(str(power_calc)))

def calculate_schedule(principal, term, annual_rate, monthly_income=None, effort_rate=None):
    """Loan totals with the payment capped at the effort-rate ceiling

    No ceiling applies when the monthly income or the effort rate is missing.
    A ceiling needs a positive income, anything else raises ValueError.
    """
    principal = _decimal(principal)
    annual_rate = _decimal(annual_rate)
    calculated_payment = calculate_monthly_payment(principal, term, annual_rate)

    max_payment = None
    effort_rate_percentage = None
    is_violated = False
    monthly_payment = calculated_payment

    if monthly_income is not None and effort_rate is not None:
        income = _decimal(monthly_income)
        if income <= 0:
            raise ValueError('Monthly income must be positive')
        effort_rate = _decimal(effort_rate)
        max_payment = _round(income * effort_rate / Decimal('100'))
        is_violated = calculated_payment > max_payment
        monthly_payment = min(calculated_payment, max_payment)
        effort_rate_percentage = _round(monthly_payment / income * Decimal('100'))

    total_amount = _round(monthly_payment * Decimal(term))
    return {
        'principal': principal,
        'term': term,
        'interest_rate': annual_rate,
        'calculated_monthly_payment': calculated_payment,
        'monthly_payment': monthly_payment,
        'max_monthly_payment': max_payment,
        'is_effort_rate_violated': is_violated,
        'effort_rate': effort_rate,
        'effort_rate_percentage': effort_rate_percentage,
        'total_amount': total_amount,
        'total_interest': total_amount - principal,
    }

def schedule_to_dict(schedule):
    """JSON view of a calculate_schedule result

    The effort-rate keys are left out when no ceiling was applied.
    """
    def as_float(value):
        return float(value) if value is not None else None

    data = {
        'amount': as_float(schedule['principal']),
        'term': schedule['term'],
        'interestRate': as_float(schedule['interest_rate']),
        'monthlyPayment': as_float(schedule['monthly_payment']),
        'calculatedMonthlyPayment': as_float(schedule['calculated_monthly_payment']),
        'totalAmount': as_float(schedule['total_amount']),
        'totalInterest': as_float(schedule['total_interest']),
    }
    if schedule['max_monthly_payment'] is not None:
        data.update({
            'effortRate': as_float(schedule['effort_rate']),
            'maxMonthlyPayment': as_float(schedule['max_monthly_payment']),
            'isEffortRateViolated': schedule['is_effort_rate_violated'],
            'effortRatePercentage': as_float(schedule['effort_rate_percentage']),
        })
    return data

def build_amortization_table(principal, term, annual_rate, monthly_payment=None, start_date=None):
    """Installment rows splitting each payment into interest and principal

    The first installment falls one month after ``start_date``. The last row
    absorbs rounding so the remaining balance closes at zero.
    """
    principal = _decimal(principal)
    monthly_rate = _decimal(annual_rate) / Decimal('100') / Decimal('12')
    payment = _decimal(monthly_payment) if monthly_payment is not None else calculate_monthly_payment(principal, term, annual_rate)
    start_date = start_date or date.today()

    rows = []
    balance = principal
    for number in range(1, term + 1):
        interest = _round(balance * monthly_rate)
        if number == term:
            principal_part = balance
            amount = principal_part + interest
        else:
            principal_part = min(balance, payment - interest)
            amount = payment
        balance = balance - principal_part

        rows.append({
            'installment_number': number,
            'due_date': start_date + relativedelta(months=number),
            'payment': float(_round(amount)),
            'principal': float(_round(principal_part)),
            'interest': float(interest),
            'remaining_balance': float(_round(balance)),
        })
    return rows
