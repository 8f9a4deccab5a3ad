from bookloans.models.domain import STAFF_ROLES, Loan, LoanStatus, utcnow
from bookloans.services.authorization import authorize, authorize_self_or
from bookloans.services.errors import NotFound, Unauthorized
from bookloans.services.policy import AvailabilityPolicy
from bookloans.store.base import LOANS, USERS


class LoanQueries:
    """Read-only views over the loans collection."""

    def __init__(self, store, policy=None, clock=utcnow):
        self.store = store
        self.policy = policy or AvailabilityPolicy()
        self.clock = clock

    def get_loan(self, ctx, loan_id):
        if ctx.identity is None:
            raise Unauthorized()
        ctx.check_deadline()
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(LOANS, loan_id)
        if doc is None:
            raise NotFound(f"Loan {loan_id} not found")
        loan = Loan.from_document(doc)
        authorize_self_or(ctx.identity, loan.user_id, *STAFF_ROLES)
        return loan

    def loans_for_user(self, ctx, user_id):
        authorize_self_or(ctx.identity, user_id, *STAFF_ROLES)
        ctx.check_deadline()
        with self.store.unit_of_work() as uow:
            if uow.find_by_id(USERS, user_id) is None:
                raise NotFound(f"User {user_id} not found")
            docs = uow.find(LOANS, user_id=user_id)
        loans = [Loan.from_document(doc) for doc in docs]
        return sorted(loans, key=lambda l: l.borrowed_at)

    def overdue_loans(self, ctx):
        # staff only; "overdue" is judged against the clock at call time
        authorize(ctx.identity, *STAFF_ROLES)
        ctx.check_deadline()
        now = self.clock()
        with self.store.unit_of_work() as uow:
            docs = uow.find(LOANS, status=LoanStatus.BORROWED.value)
        overdue = [l for l in map(Loan.from_document, docs) if self.policy.is_overdue(l, now)]
        return sorted(overdue, key=lambda l: l.due_at)
