"""
Catalog Store - Marketplace state management for Closet Swap.

Conceptual Background:
---------------------
The store owns every entity collection (users, listings, purchase
requests, transactions) inside one ``CatalogSnapshot``.

Mutation Processing:
-------------------
All of the following runs under the writer lock, against a draft copy
of the committed snapshot:

1. Resolve the acting principal and referenced entities (NotFound)
2. Check rights (Unauthorized) and inputs (InvalidInput)
3. Ask the pure engines (visibility, settlement, moderation) for the
   resulting transitions
4. Write all transitions into the draft and swap it in

Any exception before step 4 completes leaves the committed snapshot
untouched, so callers never observe a partial update. Two writers never
check against the same state: the second one sees the first one's commit.

Readers on other threads get whatever snapshot was committed last.
"""

import re
import secrets
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from closet.core.auction.settlement import SettlementOutcome, settle
from closet.core.catalog.models import (
    CatalogSnapshot,
    ListingDraft,
    ModerationAction,
    Product,
    ProductCondition,
    PurchaseRequest,
    RequestStatus,
    Review,
    Transaction,
    User,
    UserRole,
    utcnow,
)
from closet.core.config import MarketConfig
from closet.core.errors import (
    AlreadyReviewed,
    InvalidInput,
    NotFound,
    Unauthorized,
)
from closet.core import moderation
from closet.core.ranking import RankingContext, build_context
from closet.core.visibility import is_effectively_nsfw, is_product_visible, visible_products
from closet.utils.logger import get_logger
from closet.utils.validation import (
    MAX_TITLE_LENGTH,
    to_amount,
    validate_age,
    validate_amount,
    validate_bid_range,
    validate_choice,
    validate_rating,
    validate_text,
)

logger = get_logger("store")


def new_id(prefix: str) -> str:
    """Random entity id with a readable prefix."""
    return f"{prefix}-{secrets.token_hex(6)}"


def _check(result) -> None:
    """Raise InvalidInput for a failed (is_valid, error) validation."""
    is_valid, error = result
    if not is_valid:
        raise InvalidInput(error)


def _name_from_email(email: str) -> str:
    local = email.split("@")[0]
    spaced = re.sub(r"[._]", " ", local)
    return re.sub(r"\b\w", lambda m: m.group().upper(), spaced)


class CatalogStore:
    """
    In-memory marketplace catalog.

    Attributes:
        config: Market parameters (fee rate, increment, lifetimes)
        snapshot: Last committed CatalogSnapshot
    """

    def __init__(
        self,
        snapshot: Optional[CatalogSnapshot] = None,
        config: Optional[MarketConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the store.

        Args:
            snapshot: Initial state. None = empty catalog.
            config: Market parameters. None = defaults.
            clock: Time source used when a mutation gets no explicit ``now``
        """
        self.config = config or MarketConfig()
        self._snapshot = snapshot or CatalogSnapshot()
        self._clock = clock
        self._lock = threading.RLock()
        self._local = threading.local()

    # =========================================================================
    # Snapshot Handling
    # =========================================================================

    @property
    def snapshot(self) -> CatalogSnapshot:
        """Last committed state."""
        return self._snapshot

    @property
    def _state(self) -> CatalogSnapshot:
        """This thread's open draft, otherwise the committed snapshot."""
        draft = getattr(self._local, "draft", None)
        return draft if draft is not None else self._snapshot

    @contextmanager
    def _mutation(self) -> Iterator[CatalogSnapshot]:
        """
        Yield a draft snapshot under the writer lock.

        The draft is committed only if the block succeeds. Queries made by
        the same thread inside the block read the draft. A nested call
        joins the outer draft.
        """
        with self._lock:
            outer = getattr(self._local, "draft", None)
            if outer is not None:
                yield outer
                return

            draft = self._snapshot.copy()
            self._local.draft = draft
            try:
                yield draft
                self._snapshot = draft
            finally:
                self._local.draft = None

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_user(self, user_id: str) -> User:
        user = self._state.users.get(user_id)
        if user is None:
            raise NotFound("user", user_id)
        return user

    def get_product(self, product_id: str) -> Product:
        product = self._state.products.get(product_id)
        if product is None:
            raise NotFound("product", product_id)
        return product

    def get_request(self, request_id: str) -> PurchaseRequest:
        request = self._state.requests.get(request_id)
        if request is None:
            raise NotFound("purchase request", request_id)
        return request

    def get_transaction(self, transaction_id: str) -> Transaction:
        transaction = self._state.transactions.get(transaction_id)
        if transaction is None:
            raise NotFound("transaction", transaction_id)
        return transaction

    def find_user_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup by email."""
        wanted = email.strip().lower()
        for user in self._state.users.values():
            if user.email.lower() == wanted:
                return user
        return None

    def _viewer(self, viewer_id: Optional[str]) -> Optional[User]:
        return self.get_user(viewer_id) if viewer_id is not None else None

    def pending_requests_for(self, product_id: str) -> List[PurchaseRequest]:
        """Active bid pool of a listing, in submission order."""
        return [
            r for r in self._state.requests.values()
            if r.product_id == product_id and r.is_pending
        ]

    def requests_by_buyer(self, buyer_id: str) -> List[PurchaseRequest]:
        return [r for r in self._state.requests.values() if r.buyer_id == buyer_id]

    def requests_for_seller(self, seller_id: str) -> List[PurchaseRequest]:
        """Requests on any listing of the seller."""
        state = self._state
        return [
            r for r in state.requests.values()
            if r.product_id in state.products
            and state.products[r.product_id].seller_id == seller_id
        ]

    def transactions_for(self, user_id: str) -> List[Transaction]:
        """Sales where the user was buyer or seller."""
        return [
            t for t in self._state.transactions.values()
            if user_id in (t.buyer_id, t.seller_id)
        ]

    def products_by_seller(
        self,
        seller_id: str,
        viewer_id: Optional[str] = None,
    ) -> List[Product]:
        """A seller's listings as the viewer may see them."""
        state = self._state
        viewer = self._viewer(viewer_id)
        own = [p for p in state.products.values() if p.seller_id == seller_id]
        return visible_products(own, viewer, state.users)

    def visible_products(self, viewer_id: Optional[str] = None) -> List[Product]:
        """Every listing the viewer may see, any status."""
        state = self._state
        viewer = self._viewer(viewer_id)
        return visible_products(state.products.values(), viewer, state.users)

    def is_product_visible(self, product_id: str, viewer_id: Optional[str] = None) -> bool:
        product = self.get_product(product_id)
        return is_product_visible(product, self._viewer(viewer_id), self._state.users)

    def is_effectively_nsfw(self, product_id: str) -> bool:
        product = self.get_product(product_id)
        return is_effectively_nsfw(product, self._state.users.get(product.seller_id))

    def reported_products(self) -> List[Product]:
        return [p for p in self._state.products.values() if p.reported_nsfw]

    def reported_users(self) -> List[User]:
        return [u for u in self._state.users.values() if u.reported_nsfw]

    def ranking_context(
        self,
        now: Optional[datetime] = None,
        wishlist_counts: Optional[Mapping[str, int]] = None,
    ) -> RankingContext:
        """Inputs of the recommended score for the current snapshot."""
        return build_context(self._state, self._now(now), wishlist_counts)

    # =========================================================================
    # Accounts
    # =========================================================================

    def add_user(self, user: User) -> User:
        """Register a pre-built account (seeding, imports)."""
        _check(validate_age(user.age))
        with self._mutation() as draft:
            if user.id in draft.users:
                raise InvalidInput(f"User id already exists: {user.id}")
            if self.find_user_by_email(user.email) is not None:
                raise InvalidInput(f"Email already registered: {user.email}")
            draft.users[user.id] = user
        return user

    def sign_in_with_provider(self, email: str) -> User:
        """
        Find or provision the account of an identity-provider login.

        New accounts are buyers with the configured default age. Emails
        listed in ``config.admin_emails`` are promoted to admin.
        """
        _check(validate_text(email, "email", required=True))
        if "@" not in email:
            raise InvalidInput(f"Not an email address: {email!r}")

        is_admin_email = email.strip().lower() in self.config.admin_emails

        with self._mutation() as draft:
            user = self.find_user_by_email(email)
            if user is None:
                age = self.config.default_age
                user = User(
                    id=new_id("user"),
                    name=_name_from_email(email.strip()),
                    email=email.strip(),
                    age=age,
                    age_verified=age >= self.config.adult_age,
                )
                if is_admin_email:
                    user = replace(user, is_admin=True, role=UserRole.ADMIN)
                draft.users[user.id] = user
                logger.info(f"Provisioned account {user.id} for {user.email}")
            elif is_admin_email and not user.is_admin:
                user = replace(user, is_admin=True, role=UserRole.ADMIN)
                draft.users[user.id] = user
                logger.info(f"Promoted {user.id} to admin")

        return user

    def upgrade_to_seller(self, actor_id: str, user_id: str) -> User:
        """Turn the actor's own buyer account into a seller account."""
        if actor_id != user_id:
            raise Unauthorized("Users can only upgrade their own account")

        with self._mutation() as draft:
            user = self.get_user(user_id)
            if user.is_seller:
                return user
            user = replace(
                user,
                role=UserRole.SELLER,
                payment_methods=dict(user.payment_methods or {}),
                fees_owed=user.fees_owed or Decimal("0"),
            )
            draft.users[user.id] = user

        logger.info(f"{user.id} upgraded to seller")
        return user

    def update_payment_methods(
        self,
        actor_id: str,
        user_id: str,
        methods: Mapping[str, str],
    ) -> User:
        """Replace the payout settings of the actor's own account."""
        if actor_id != user_id:
            raise Unauthorized("Users can only edit their own payment methods")
        for key, value in methods.items():
            _check(validate_text(value, f"payment_methods.{key}", MAX_TITLE_LENGTH))

        with self._mutation() as draft:
            user = replace(self.get_user(user_id), payment_methods=dict(methods))
            draft.users[user.id] = user
        return user

    def pay_fees(self, actor_id: str, user_id: str) -> Decimal:
        """
        Settle the actor's outstanding fees.

        Returns:
            Amount paid
        """
        if actor_id != user_id:
            raise Unauthorized("Users can only pay their own fees")

        with self._mutation() as draft:
            user = self.get_user(user_id)
            paid = user.fees_owed
            draft.users[user.id] = replace(user, fees_owed=Decimal("0"))

        logger.info(f"{user.id} paid fees: {paid}")
        return paid

    def set_account_nsfw(self, actor_id: str, is_nsfw: bool) -> User:
        """Self-declare the actor's whole account (and listings) NSFW."""
        with self._mutation() as draft:
            user = replace(self.get_user(actor_id), is_nsfw=bool(is_nsfw))
            draft.users[user.id] = user
        return user

    # =========================================================================
    # Listings
    # =========================================================================

    def add_listing(
        self,
        seller_id: str,
        draft_listing: ListingDraft,
        now: Optional[datetime] = None,
        flagged_by_assistant: bool = False,
    ) -> Product:
        """
        Publish a new listing.

        Args:
            seller_id: Acting seller
            draft_listing: Seller-supplied fields
            now: Creation time
            flagged_by_assistant: Content pre-screen verdict; flagged
                listings start out reported and await moderation

        Returns:
            The new Product
        """
        now = self._now(now)

        d = draft_listing
        _check(validate_text(d.title, "title", MAX_TITLE_LENGTH, required=True))
        _check(validate_text(d.description, "description"))
        _check(validate_text(d.category, "category", MAX_TITLE_LENGTH, required=True))
        _check(validate_amount(d.price, "price", allow_zero=False))
        _check(validate_amount(d.shipping_cost, "shipping_cost"))
        if d.reserve_price is not None:
            _check(validate_amount(d.reserve_price, "reserve_price"))
        _check(validate_choice(d.condition, "condition", list(ProductCondition)))

        expires_at = d.expires_at or now + timedelta(days=self.config.listing_lifetime_days)
        if expires_at <= now:
            raise InvalidInput("expires_at must be after the creation time")

        with self._mutation() as snap:
            seller = self.get_user(seller_id)
            if not seller.is_seller:
                raise Unauthorized("Only sellers can create listings")
            if seller.is_suspended:
                raise Unauthorized("Suspended accounts cannot create listings")

            product = Product(
                id=new_id("prod"),
                title=d.title.strip(),
                description=d.description,
                price=to_amount(d.price),
                category=d.category,
                condition=ProductCondition(d.condition),
                seller_id=seller.id,
                created_at=now,
                expires_at=expires_at,
                shipping_cost=to_amount(d.shipping_cost),
                reserve_price=to_amount(d.reserve_price) if d.reserve_price is not None else None,
                is_nsfw=bool(d.is_nsfw),
                reported_nsfw=bool(flagged_by_assistant),
                documented_damage=tuple(d.documented_damage),
                image_url=d.image_url,
            )
            snap.products[product.id] = product

        logger.info(
            f"Listing {product.id} by {seller.id}: {product.title!r} at {product.price}"
            + (" (flagged for review)" if flagged_by_assistant else "")
        )
        return product

    def sweep_expired(self, now: Optional[datetime] = None) -> List[str]:
        """Expire overdue listings. Returns the ids that changed."""
        now = self._now(now)
        with self._mutation() as draft:
            draft.products, expired = moderation.apply_expiry(draft.products, now)
        return expired

    # =========================================================================
    # Bidding & Settlement
    # =========================================================================

    def submit_bid(
        self,
        buyer_id: str,
        product_id: str,
        min_bid,
        max_bid,
        comment: str = "",
        now: Optional[datetime] = None,
    ) -> PurchaseRequest:
        """
        Place a purchase request on a listing.

        Raises:
            InvalidInput: bad amounts, listing not available, duplicate bid
            NotFound: unknown buyer, or listing missing or hidden from buyer
            Unauthorized: own listing, suspended buyer
        """
        now = self._now(now)
        _check(validate_bid_range(min_bid, max_bid))
        _check(validate_text(comment, "comment"))

        with self._mutation() as draft:
            buyer = self.get_user(buyer_id)
            product = self.get_product(product_id)

            if not is_product_visible(product, buyer, draft.users):
                raise NotFound("product", product_id)
            if buyer.is_suspended:
                raise Unauthorized("Suspended accounts cannot bid")
            if product.seller_id == buyer.id:
                raise Unauthorized("Sellers cannot bid on their own listing")
            seller = draft.users.get(product.seller_id)
            if seller is not None and seller.is_suspended:
                raise Unauthorized("Listings of suspended sellers cannot receive bids")
            if not product.is_available:
                raise InvalidInput(f"Listing {product.id} is {product.status.value}")
            if any(r.buyer_id == buyer.id for r in self.pending_requests_for(product.id)):
                raise InvalidInput("You already have a pending offer on this listing")

            request = PurchaseRequest(
                id=new_id("req"),
                product_id=product.id,
                buyer_id=buyer.id,
                min_bid=to_amount(min_bid),
                max_bid=to_amount(max_bid),
                created_at=now,
                comment=comment,
            )
            draft.requests[request.id] = request

        logger.info(f"Bid {request.id} on {product.id} by {buyer.id}")
        return request

    def accept_bid(
        self,
        seller_id: str,
        request_id: str,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """
        Accept one pending request and sell the listing.

        On success the listing is sold, the request accepted, every other
        pending request on the listing rejected, a Transaction recorded
        and the fee added to the seller's balance, all in one commit.

        Raises:
            NotFound, Unauthorized, InvalidInput, ReserveNotMet
        """
        now = self._now(now)

        with self._mutation() as draft:
            request = self.get_request(request_id)
            product = self.get_product(request.product_id)
            seller = self.get_user(product.seller_id)
            buyer = self.get_user(request.buyer_id)

            outcome: SettlementOutcome = settle(
                product,
                request,
                self.pending_requests_for(product.id),
                caller_id=seller_id,
                fee_rate=self.config.fee_rate,
                increment=self.config.bid_increment,
            )

            if seller.is_suspended:
                raise Unauthorized("Suspended sellers cannot complete sales")
            if buyer.is_suspended:
                raise Unauthorized("Suspended buyers cannot receive new transactions")

            transaction = Transaction(
                id=new_id("txn"),
                product_id=product.id,
                buyer_id=buyer.id,
                seller_id=seller.id,
                price=outcome.clearing_price,
                shipping_cost=product.shipping_cost,
                fee=outcome.fee,
                created_at=now,
            )

            draft.products[product.id] = moderation.mark_sold(product)
            draft.requests[outcome.accepted_id] = replace(
                request, status=RequestStatus.ACCEPTED
            )
            for rid in outcome.rejected_ids:
                draft.requests[rid] = replace(
                    draft.requests[rid], status=RequestStatus.REJECTED
                )
            draft.transactions[transaction.id] = transaction
            draft.users[seller.id] = replace(
                seller, fees_owed=seller.fees_owed + outcome.fee
            )

        logger.info(
            f"Sale {transaction.id}: {product.id} to {buyer.id} for "
            f"{outcome.clearing_price} (fee {outcome.fee})"
        )
        return transaction

    # =========================================================================
    # Reviews
    # =========================================================================

    def add_review(
        self,
        author_id: str,
        transaction_id: str,
        rating: int,
        text: str,
        now: Optional[datetime] = None,
    ) -> Review:
        """
        Review the other party of a transaction.

        Each party may review once; the transaction's reviewed flags are
        the record of that.

        Raises:
            NotFound, Unauthorized, AlreadyReviewed, InvalidInput
        """
        now = self._now(now)
        _check(validate_rating(rating))
        _check(validate_text(text, "text"))

        with self._mutation() as draft:
            author = self.get_user(author_id)
            transaction = self.get_transaction(transaction_id)

            is_buyer = transaction.buyer_id == author.id
            is_seller = transaction.seller_id == author.id
            if not (is_buyer or is_seller):
                raise Unauthorized("You are not part of this transaction")
            if (is_buyer and transaction.reviewed_by_buyer) or (
                is_seller and transaction.reviewed_by_seller
            ):
                raise AlreadyReviewed("You have already reviewed this transaction")

            target = self.get_user(
                transaction.seller_id if is_buyer else transaction.buyer_id
            )
            review = Review(
                id=new_id("review"),
                author_id=author.id,
                target_id=target.id,
                rating=rating,
                text=text,
                transaction_id=transaction.id,
                created_at=now,
            )

            draft.users[target.id] = replace(target, reviews=target.reviews + (review,))
            if is_buyer:
                transaction = replace(transaction, reviewed_by_buyer=True)
            else:
                transaction = replace(transaction, reviewed_by_seller=True)
            draft.transactions[transaction.id] = transaction

        logger.info(f"Review {review.id} on {target.id}: {rating}/5")
        return review

    # =========================================================================
    # Moderation
    # =========================================================================

    def _require_admin(self, admin_id: str) -> User:
        admin = self.get_user(admin_id)
        if not admin.is_moderator:
            logger.warning(f"Moderation refused for non-admin {admin_id}")
            raise Unauthorized("Admin rights required")
        return admin

    def report_product(self, reporter_id: Optional[str], product_id: str) -> Product:
        """Report a listing as NSFW. Anonymous reports (None) are accepted."""
        with self._mutation() as draft:
            if reporter_id is not None:
                self.get_user(reporter_id)
            product = self.get_product(product_id)
            updated = moderation.report_product(product, reporter_id)
            draft.products[product.id] = updated

        if updated is not product:
            logger.info(f"Listing {product.id} reported")
        return updated

    def report_user(self, reporter_id: Optional[str], user_id: str) -> User:
        """Report an account as NSFW."""
        with self._mutation() as draft:
            if reporter_id is not None:
                self.get_user(reporter_id)
            user = self.get_user(user_id)
            updated = moderation.report_user(user, reporter_id)
            draft.users[user.id] = updated

        if updated is not user:
            logger.info(f"Account {user.id} reported")
        return updated

    def review_reported_product(
        self,
        admin_id: str,
        product_id: str,
        action: ModerationAction,
    ) -> Product:
        with self._mutation() as draft:
            self._require_admin(admin_id)
            updated = moderation.review_product(self.get_product(product_id), action)
            draft.products[updated.id] = updated

        logger.info(f"Report on {updated.id} resolved: {ModerationAction(action).value}")
        return updated

    def review_reported_user(
        self,
        admin_id: str,
        user_id: str,
        action: ModerationAction,
    ) -> User:
        with self._mutation() as draft:
            self._require_admin(admin_id)
            updated = moderation.review_user(self.get_user(user_id), action)
            draft.users[updated.id] = updated

        logger.info(f"Report on {updated.id} resolved: {ModerationAction(action).value}")
        return updated

    def suspend_user(self, admin_id: str, user_id: str) -> User:
        with self._mutation() as draft:
            self._require_admin(admin_id)
            user = moderation.suspend(self.get_user(user_id))
            draft.users[user.id] = user

        logger.warning(f"Account {user.id} suspended by {admin_id}")
        return user

    def reinstate_user(self, admin_id: str, user_id: str) -> User:
        with self._mutation() as draft:
            self._require_admin(admin_id)
            user = moderation.reinstate(self.get_user(user_id))
            draft.users[user.id] = user

        logger.info(f"Account {user.id} reinstated by {admin_id}")
        return user

    # =========================================================================
    # Stats
    # =========================================================================

    def stats(self) -> Dict[str, object]:
        """Get catalog statistics."""
        snap = self._state
        status_counts: Dict[str, int] = {}
        for p in snap.products.values():
            status_counts[p.status.value] = status_counts.get(p.status.value, 0) + 1
        return {
            "users": len(snap.users),
            "products": status_counts,
            "pending_requests": sum(1 for r in snap.requests.values() if r.is_pending),
            "transactions": len(snap.transactions),
            "fees_owed": sum((u.fees_owed for u in snap.users.values()), Decimal("0")),
            "reported": len(self.reported_products()) + len(self.reported_users()),
        }
