from django.urls import path
from . import dashboard, views

urlpatterns = [
    # --- الصفحات العامة ---
    path('', views.home, name='home'),
    path('search/', views.search, name='search'),
    path('track-order/', views.track_order, name='track_order'),

    # --- المتجر والمنتجات ---
    path('category/<slug:slug>/', views.category_view, name='category'),
    path('product/<int:id>/', views.product_detail, name='product_detail'),
    path('product/<int:product_id>/review/', views.submit_review, name='submit_review'),

    # --- عربة التسوق (Cart) ---
    path('cart/', views.cart_view, name='cart_view'),
    path('add-to-cart/<int:product_id>/', views.add_to_cart, name='add_to_cart'),
    # مفاتيح السلة النصية (مثل 12_M_Black/White)
    path('remove-from-cart/<path:item_key>/', views.remove_from_cart, name='remove_from_cart'),
    path('cart/update/<path:item_key>/<str:action>/', views.update_cart, name='update_cart'),

    # --- إتمام الطلب ---
    path('checkout/', views.checkout, name='checkout'),
    path('checkout/coupon/', views.apply_coupon, name='apply_coupon'),
    path('checkout/coupon/remove/', views.remove_coupon, name='remove_coupon'),
    path('checkout/cancel-buy-now/', views.cancel_buy_now, name='cancel_buy_now'),
    path('checkout/delivery-quote/', views.delivery_quote, name='delivery_quote'),
    path('order/<int:order_id>/', views.order_confirmation, name='order_confirmation'),

    # --- لوحة التحكم (Dashboard) ---
    path('dashboard/login/', dashboard.dashboard_login, name='dashboard_login'),
    path('dashboard/logout/', dashboard.dashboard_logout, name='dashboard_logout'),
    path('dashboard/', dashboard.dashboard_view, name='dashboard'),

    path('dashboard/products/', dashboard.product_list, name='dashboard_products'),
    path('dashboard/products/add/', dashboard.product_create, name='dashboard_product_add'),
    path('dashboard/products/<int:pk>/edit/', dashboard.product_edit, name='dashboard_product_edit'),
    path('dashboard/products/<int:pk>/delete/', dashboard.product_delete, name='dashboard_product_delete'),
    path('dashboard/products/<int:pk>/toggle/', dashboard.product_toggle, name='dashboard_product_toggle'),

    path('dashboard/categories/', dashboard.category_list, name='dashboard_categories'),
    path('dashboard/categories/<int:pk>/edit/', dashboard.category_edit, name='dashboard_category_edit'),
    path('dashboard/categories/<int:pk>/delete/', dashboard.category_delete, name='dashboard_category_delete'),

    path('dashboard/orders/', dashboard.order_list, name='dashboard_orders'),
    path('dashboard/orders/status/<str:status>/', dashboard.order_list, name='dashboard_orders_by_status'),
    path('dashboard/orders/<int:pk>/', dashboard.order_detail, name='dashboard_order_detail'),
    path('dashboard/orders/<int:pk>/status/', dashboard.order_status, name='dashboard_order_status'),
    path('dashboard/orders/<int:pk>/delete/', dashboard.order_delete, name='dashboard_order_delete'),

    path('dashboard/delivery-prices/', dashboard.delivery_prices, name='dashboard_delivery_prices'),
    path('dashboard/delivery-prices/<int:pk>/', dashboard.wilaya_price_update, name='dashboard_wilaya_price'),
    path('dashboard/delivery-prices/defaults/', dashboard.delivery_defaults_update, name='dashboard_delivery_defaults'),
    path('dashboard/delivery-prices/bulk/', dashboard.delivery_bulk_update, name='dashboard_delivery_bulk'),

    path('dashboard/analytics/', dashboard.analytics_view, name='dashboard_analytics'),

    path('dashboard/coupons/', dashboard.coupon_list, name='dashboard_coupons'),
    path('dashboard/coupons/add/', dashboard.coupon_create, name='dashboard_coupon_add'),
    path('dashboard/coupons/<int:pk>/edit/', dashboard.coupon_edit, name='dashboard_coupon_edit'),
    path('dashboard/coupons/<int:pk>/delete/', dashboard.coupon_delete, name='dashboard_coupon_delete'),
    path('dashboard/coupons/<int:pk>/toggle/', dashboard.coupon_toggle, name='dashboard_coupon_toggle'),

    path('dashboard/banners/', dashboard.banner_list, name='dashboard_banners'),
    path('dashboard/banners/add/', dashboard.banner_create, name='dashboard_banner_add'),
    path('dashboard/banners/<int:pk>/edit/', dashboard.banner_edit, name='dashboard_banner_edit'),
    path('dashboard/banners/<int:pk>/delete/', dashboard.banner_delete, name='dashboard_banner_delete'),
    path('dashboard/banners/<int:pk>/toggle/', dashboard.banner_toggle, name='dashboard_banner_toggle'),

    path('dashboard/reviews/', dashboard.review_list, name='dashboard_reviews'),
    path('dashboard/reviews/<int:pk>/approve/', dashboard.review_toggle_approval, name='dashboard_review_toggle'),
    path('dashboard/reviews/<int:pk>/delete/', dashboard.review_delete, name='dashboard_review_delete'),
    path('dashboard/reviews/<int:pk>/reply/', dashboard.review_reply, name='dashboard_review_reply'),
    path('dashboard/replies/<int:pk>/delete/', dashboard.reply_delete, name='dashboard_reply_delete'),

    path('dashboard/social-links/', dashboard.social_link_list, name='dashboard_social_links'),
    path('dashboard/social-links/<int:pk>/', dashboard.social_link_update, name='dashboard_social_link_update'),
    path('dashboard/social-links/<int:pk>/delete/', dashboard.social_link_delete, name='dashboard_social_link_delete'),

    path('dashboard/tracking-pixels/', dashboard.pixel_list, name='dashboard_pixels'),
    path('dashboard/tracking-pixels/<int:pk>/toggle/', dashboard.pixel_toggle, name='dashboard_pixel_toggle'),
    path('dashboard/tracking-pixels/<int:pk>/delete/', dashboard.pixel_delete, name='dashboard_pixel_delete'),

    # --- المستخدمون (للمسؤول فقط) ---
    path('dashboard/users/', dashboard.user_list, name='dashboard_users'),
    path('dashboard/users/add/', dashboard.user_create, name='dashboard_user_add'),
    path('dashboard/users/<int:pk>/', dashboard.user_edit, name='dashboard_user_edit'),
    path('dashboard/users/<int:pk>/delete/', dashboard.user_delete, name='dashboard_user_delete'),
]
