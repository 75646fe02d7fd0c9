"""Local fallback engine backed by the persistent record store.

Every operation reads whole collections, computes the answer with plain list
operations and writes whole collections back. Joins, uniqueness checks and
the order-placement cascade are done here by hand, since the store itself
enforces nothing.

Credentials are kept in clear text. This engine is a development fallback for
when no Supabase project is configured, not a secure user store.
"""
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from storage import (
    RecordStore,
    COLLECTIONS,
    USERS,
    SELLERS,
    PRODUCTS,
    CART_ITEMS,
    ORDERS,
    ORDER_ITEMS,
    REVIEWS,
    CURRENT_USER
)

from ..exceptions import (
    DuplicateUserError,
    InvalidCredentialsError,
    NotFoundError,
    DuplicateReviewError,
    InsufficientInventoryError,
    EmptyCartError
)
from ..models import (
    Author,
    CartItem,
    CartLine,
    Order,
    OrderCreate,
    OrderDetail,
    OrderItem,
    OrderLine,
    OrderStatus,
    Product,
    ProductCreate,
    ProductUpdate,
    PublicUser,
    Review,
    ReviewCreate,
    ReviewWithAuthor,
    Seller,
    SellerCreate,
    SellerStatus,
    Session,
    User,
    check_quantity,
    check_seller_status,
    coerce,
    new_id,
    utcnow
)
from ..result import returns_result

logger = logging.getLogger(__name__)

DEMO_EMAIL = 'test@example.com'
DEMO_PASSWORD = 'password123'

DEMO_PRODUCTS = [
    {
        'title': 'Test Product 1',
        'description': 'This is a test product with a detailed description. The product is made '
                       'with high-quality materials and is perfect for everyday use.',
        'price': Decimal('1999'),
        'category': 'Electronics',
        'inventory': 10,
        'image_urls': ['https://via.placeholder.com/300x300?text=Product+1']
    },
    {
        'title': 'Test Product 2',
        'description': 'Another test product with different specifications. '
                       'Great for gifting to friends and family.',
        'price': Decimal('2999'),
        'category': 'Home & Kitchen',
        'inventory': 5,
        'image_urls': ['https://via.placeholder.com/300x300?text=Product+2']
    },
    {
        'title': 'Test Product 3',
        'description': 'Premium test product with advanced features. '
                       'Limited edition with special packaging.',
        'price': Decimal('4999'),
        'category': 'Clothing',
        'inventory': 2,
        'image_urls': ['https://via.placeholder.com/300x300?text=Product+3']
    }
]

def newest_first(records: List[Any]) -> List[Any]:
    # Ties keep insertion order reversed, so the later write comes first
    return sorted(records, key=lambda r: r.created_at)[::-1]

class LocalEngine:
    """Domain operations over a RecordStore."""

    name = 'local'

    def __init__(self, store: RecordStore, seed_demo_data: bool = False) -> None:
        """Initialize local engine.

        Args:
            store: Record store holding every collection
            seed_demo_data: Seed a demo user, seller and products into an empty store
        """
        self.store = store
        self.seed_demo_data = seed_demo_data
        self.initialized = False

    def is_using_remote(self) -> bool:
        return False

    async def init(self) -> None:
        """Create missing collections and optionally seed demo data."""
        if self.initialized:
            return
        self.store.ensure(COLLECTIONS)
        if self.seed_demo_data and not self.store.read(USERS):
            self.seed()
        self.initialized = True
        logger.info(f"Local record store ready at {self.store.root}")

    async def close(self) -> None:
        self.initialized = False

    def seed(self) -> None:
        """Write the demo user, an approved demo seller and three products."""
        now = utcnow()
        user = User(
            id=new_id(),
            email=DEMO_EMAIL,
            password=DEMO_PASSWORD,
            created_at=now
        )
        seller = Seller(
            id=new_id(),
            user_id=user.id,
            business_name='Test Store',
            description='This is a test store for development purposes',
            status=SellerStatus.APPROVED,
            created_at=now
        )
        products = [
            Product(
                id=new_id(),
                seller_id=seller.id,
                created_at=now - timedelta(days=age),
                **fields
            )
            for age, fields in enumerate(DEMO_PRODUCTS)
        ]
        self.store.write(USERS, [user.to_record()])
        self.store.write(SELLERS, [seller.to_record()])
        self.store.write(PRODUCTS, [p.to_record() for p in products])
        logger.info(f"Seeded demo data for {DEMO_EMAIL}")

    # Collection helpers

    def _users(self) -> List[User]:
        return [User.model_validate(r) for r in self.store.read(USERS)]

    def _sellers(self) -> List[Seller]:
        return [Seller.model_validate(r) for r in self.store.read(SELLERS)]

    def _products(self) -> List[Product]:
        return [Product.model_validate(r) for r in self.store.read(PRODUCTS)]

    def _cart_items(self) -> List[CartItem]:
        return [CartItem.model_validate(r) for r in self.store.read(CART_ITEMS)]

    def _orders(self) -> List[Order]:
        return [Order.model_validate(r) for r in self.store.read(ORDERS)]

    def _order_items(self) -> List[OrderItem]:
        return [OrderItem.model_validate(r) for r in self.store.read(ORDER_ITEMS)]

    def _reviews(self) -> List[Review]:
        return [Review.model_validate(r) for r in self.store.read(REVIEWS)]

    def _save(self, key: str, records: List[Any]) -> None:
        self.store.write(key, [r.to_record() for r in records])

    # Session

    @returns_result
    async def get_session(self) -> Optional[Session]:
        current = self.store.get_slot(CURRENT_USER)
        if not current:
            return None
        try:
            user = PublicUser.model_validate(current)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable session: {e}")
            self.store.clear_slot(CURRENT_USER)
            return None
        return Session(user=user)

    @returns_result
    async def sign_in(self, email: str, password: str) -> PublicUser:
        user = next(
            (u for u in self._users() if u.email == email and u.password == password),
            None
        )
        if user is None:
            raise InvalidCredentialsError("Invalid login credentials")

        public = user.public()
        self.store.set_slot(CURRENT_USER, public.to_record())
        logger.info(f"Signed in {email}")
        return public

    @returns_result
    async def sign_up(
        self,
        email: str,
        password: str,
        user_metadata: Optional[Dict[str, Any]] = None
    ) -> PublicUser:
        users = self._users()
        if any(u.email == email for u in users):
            raise DuplicateUserError("User with this email already exists")

        user = User(
            id=new_id(),
            email=email,
            password=password,
            created_at=utcnow(),
            user_metadata=user_metadata or {}
        )
        users.append(user)
        self._save(USERS, users)

        public = user.public()
        self.store.set_slot(CURRENT_USER, public.to_record())
        logger.info(f"Registered {email}")
        return public

    @returns_result
    async def sign_out(self) -> None:
        self.store.clear_slot(CURRENT_USER)

    # Sellers

    @returns_result
    async def get_seller_profile(self, user_id: str) -> Optional[Seller]:
        return next((s for s in self._sellers() if s.user_id == user_id), None)

    @returns_result
    async def create_seller_profile(
        self,
        seller_data: Union[SellerCreate, Dict[str, Any]]
    ) -> Seller:
        # No one-profile-per-user check here; callers look the profile up first
        data = coerce(SellerCreate, seller_data)
        seller = Seller(id=new_id(), created_at=utcnow(), **data.model_dump())
        sellers = self._sellers()
        sellers.append(seller)
        self._save(SELLERS, sellers)
        logger.info(f"Created seller {seller.id} for user {seller.user_id}")
        return seller

    @returns_result
    async def update_seller_status(
        self,
        seller_id: str,
        status: Union[SellerStatus, str]
    ) -> Seller:
        status = check_seller_status(status)
        sellers = self._sellers()
        for index, seller in enumerate(sellers):
            if seller.id == seller_id:
                sellers[index] = seller.model_copy(
                    update={'status': status, 'updated_at': utcnow()}
                )
                self._save(SELLERS, sellers)
                return sellers[index]
        raise NotFoundError('Seller', seller_id)

    # Products

    @returns_result
    async def create_product(
        self,
        product: Union[ProductCreate, Dict[str, Any]]
    ) -> Product:
        data = coerce(ProductCreate, product)
        created = Product(id=new_id(), created_at=utcnow(), **data.model_dump())
        products = self._products()
        products.append(created)
        self._save(PRODUCTS, products)
        return created

    @returns_result
    async def get_seller_products(self, seller_id: str) -> List[Product]:
        return newest_first([p for p in self._products() if p.seller_id == seller_id])

    @returns_result
    async def update_product(
        self,
        product: Union[ProductUpdate, Dict[str, Any]]
    ) -> Product:
        update = coerce(ProductUpdate, product)
        products = self._products()
        for index, existing in enumerate(products):
            if existing.id == update.id:
                merged = existing.model_dump()
                merged.update(update.changes())
                merged['updated_at'] = utcnow()
                products[index] = Product.model_validate(merged)
                self._save(PRODUCTS, products)
                return products[index]
        raise NotFoundError('Product', update.id)

    @returns_result
    async def delete_product(self, product_id: str) -> None:
        products = self._products()
        remaining = [p for p in products if p.id != product_id]
        if len(remaining) == len(products):
            raise NotFoundError('Product', product_id)
        self._save(PRODUCTS, remaining)

    @returns_result
    async def get_products(self) -> List[Product]:
        return newest_first(self._products())

    @returns_result
    async def get_product_by_id(self, product_id: str) -> Product:
        product = next((p for p in self._products() if p.id == product_id), None)
        if product is None:
            raise NotFoundError('Product', product_id)
        return product

    @returns_result
    async def search_products(
        self,
        query: str,
        category: Optional[str] = None
    ) -> List[Product]:
        needle = query.lower()
        matches = [
            p for p in self._products()
            if (needle in p.title.lower() or needle in p.description.lower())
            and (not category or p.category == category)
        ]
        return newest_first(matches)

    # Cart

    @returns_result
    async def add_to_cart(self, user_id: str, product_id: str, quantity: int) -> CartItem:
        check_quantity(quantity)
        cart_items = self._cart_items()
        for index, item in enumerate(cart_items):
            if item.user_id == user_id and item.product_id == product_id:
                cart_items[index] = CartItem.model_validate(
                    {**item.model_dump(), 'quantity': item.quantity + quantity}
                )
                self._save(CART_ITEMS, cart_items)
                return cart_items[index]

        item = CartItem(
            id=new_id(),
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            created_at=utcnow()
        )
        cart_items.append(item)
        self._save(CART_ITEMS, cart_items)
        return item

    @returns_result
    async def get_cart(self, user_id: str) -> List[CartLine]:
        products = {p.id: p for p in self._products()}
        return [
            CartLine(**item.model_dump(), product=products.get(item.product_id))
            for item in self._cart_items()
            if item.user_id == user_id
        ]

    @returns_result
    async def update_cart_item(self, user_id: str, product_id: str, quantity: int) -> CartItem:
        check_quantity(quantity)
        cart_items = self._cart_items()
        for index, item in enumerate(cart_items):
            if item.user_id == user_id and item.product_id == product_id:
                cart_items[index] = CartItem.model_validate(
                    {**item.model_dump(), 'quantity': quantity}
                )
                self._save(CART_ITEMS, cart_items)
                return cart_items[index]
        raise NotFoundError('Cart item', product_id)

    @returns_result
    async def remove_cart_item(self, user_id: str, product_id: str) -> None:
        cart_items = self._cart_items()
        remaining = [
            item for item in cart_items
            if not (item.user_id == user_id and item.product_id == product_id)
        ]
        if len(remaining) == len(cart_items):
            raise NotFoundError('Cart item', product_id)
        self._save(CART_ITEMS, remaining)

    # Orders

    @returns_result
    async def create_order(
        self,
        user_id: str,
        order_data: Union[OrderCreate, Dict[str, Any], None] = None
    ) -> Order:
        """Turn the user's cart into an order.

        Totals use the current product prices, which are copied onto the
        order items. Inventory is decremented and the cart cleared in the
        same batch as the order writes, so a failure part way leaves the
        store as it was.
        """
        data = coerce(OrderCreate, order_data or {})
        all_cart_items = self._cart_items()
        cart_rows = [item for item in all_cart_items if item.user_id == user_id]
        products = self._products()
        by_id = {p.id: p for p in products}

        lines = []
        total = Decimal('0')
        for row in cart_rows:
            product = by_id.get(row.product_id)
            if product is None:
                logger.warning(f"Skipping cart row for deleted product {row.product_id}")
                continue
            if product.inventory < row.quantity:
                raise InsufficientInventoryError(product.id, product.inventory, row.quantity)
            total += product.price * row.quantity
            lines.append((row, product))

        if not lines:
            raise EmptyCartError(f"Cart for user {user_id} has no orderable items")

        order = Order(
            id=new_id(),
            user_id=user_id,
            total=total,
            status=OrderStatus.PENDING,
            shipping_address=data.shipping_address,
            created_at=utcnow()
        )
        new_items = []
        for row, product in lines:
            new_items.append(OrderItem(
                id=new_id(),
                order_id=order.id,
                product_id=product.id,
                quantity=row.quantity,
                price=product.price
            ))
            by_id[product.id] = product.model_copy(
                update={'inventory': product.inventory - row.quantity}
            )

        with self.store.batch(ORDERS, ORDER_ITEMS, PRODUCTS, CART_ITEMS):
            self._save(ORDERS, self._orders() + [order])
            self._save(ORDER_ITEMS, self._order_items() + new_items)
            self._save(PRODUCTS, [by_id[p.id] for p in products])
            self._save(CART_ITEMS, [i for i in all_cart_items if i.user_id != user_id])

        logger.info(f"Order {order.id} placed for user {user_id}: {len(new_items)} items, total {total}")
        return order

    @returns_result
    async def get_orders(self, user_id: str) -> List[Order]:
        return newest_first([o for o in self._orders() if o.user_id == user_id])

    @returns_result
    async def get_order_by_id(self, order_id: str) -> OrderDetail:
        order = next((o for o in self._orders() if o.id == order_id), None)
        if order is None:
            raise NotFoundError('Order', order_id)

        products = {p.id: p for p in self._products()}
        items = [
            OrderLine(**item.model_dump(), product=products.get(item.product_id))
            for item in self._order_items()
            if item.order_id == order_id
        ]
        return OrderDetail(**order.model_dump(), items=items)

    # Reviews

    @returns_result
    async def add_review(
        self,
        user_id: str,
        product_id: str,
        review: Union[ReviewCreate, Dict[str, Any]]
    ) -> Review:
        data = coerce(ReviewCreate, review)
        reviews = self._reviews()
        if any(r.user_id == user_id and r.product_id == product_id for r in reviews):
            raise DuplicateReviewError("You have already reviewed this product")

        created = Review(
            id=new_id(),
            user_id=user_id,
            product_id=product_id,
            created_at=utcnow(),
            **data.model_dump()
        )
        reviews.append(created)
        self._save(REVIEWS, reviews)
        return created

    @returns_result
    async def get_product_reviews(self, product_id: str) -> List[ReviewWithAuthor]:
        authors = {u.id: Author(id=u.id, email=u.email) for u in self._users()}
        return [
            ReviewWithAuthor(**r.model_dump(), user=authors.get(r.user_id))
            for r in self._reviews()
            if r.product_id == product_id
        ]
