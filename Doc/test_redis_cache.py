"""
Script to verify the Redis cache used for dashboards, supplier lookups and reports.

Run this after setting up Redis to verify everything is configured properly:
    python manage.py shell < Doc/test_redis_cache.py
"""
import os
import django

# Setup Django
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.config.settings')
django.setup()

from django.core.cache import cache
from django.conf import settings

from backend.core.cache_utils import (
    DASHBOARD_PREFIX,
    REPORTS_PREFIX,
    invalidate_dashboard_cache,
    invalidate_reports_cache,
    make_cache_key,
)

print("=" * 60)
print("Redis Cache Test")
print("=" * 60)

print(f"\n1. Cache Backend: {settings.CACHES['default']['BACKEND']}")
print(f"2. Cache Location: {settings.CACHES['default'].get('LOCATION', 'N/A')}")

print("\n3. Testing Cache Operations:")
print("-" * 60)

try:
    cache.set('test_key', 'test_value', 60)
    print("✅ Cache SET: Success")

    value = cache.get('test_key')
    if value == 'test_value':
        print("✅ Cache GET: Success (value matches)")
    else:
        print(f"❌ Cache GET: Failed (got: {value}, expected: 'test_value')")

    cache.delete('test_key')
    if cache.get('test_key') is None:
        print("✅ Cache DELETE: Success")
    else:
        print("❌ Cache DELETE: Failed (value still exists)")

    print("\n4. Testing Pattern Invalidation:")
    print("-" * 60)
    dashboard_key = make_cache_key(DASHBOARD_PREFIX, 'get_dashboard_summary')
    report_key = make_cache_key(REPORTS_PREFIX, 'generate_delivery_performance_report')
    cache.set(dashboard_key, {'total_orders': 1}, 60)
    cache.set(report_key, {'total_deliveries': 1}, 60)
    print(f"✅ Dashboard key: {dashboard_key}")
    print(f"✅ Report key: {report_key}")

    invalidate_dashboard_cache()
    if cache.get(dashboard_key) is None:
        print("✅ Dashboard invalidation: Success")
    else:
        print("❌ Dashboard invalidation: Failed")

    invalidate_reports_cache()
    if cache.get(report_key) is None:
        print("✅ Reports invalidation: Success")
    else:
        print("❌ Reports invalidation: Failed")

    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED - Redis Cache is working correctly!")
    print("=" * 60)

except Exception as e:
    print(f"\n❌ ERROR: {str(e)}")
    print(f"   Error type: {type(e).__name__}")
    import traceback
    traceback.print_exc()
    print("\n" + "=" * 60)
    print("❌ Redis Cache test failed. Please check:")
    print("   1. REDIS_URL is set correctly")
    print("   2. django-redis is installed: pip install django-redis")
    print("   3. Redis service is accessible from your server")
    print("=" * 60)
