from .context import ACTOR_TYPES, REQUIRED_PURPOSE, ActorContext, ActorType
from .records import InsurancePolicy, Patient, policy_sort_key, to_calendar_date
