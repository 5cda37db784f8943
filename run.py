"""
Shopper rewards entry point.
"""
import os
import sys
import traceback

print("[ShopperRewards] ========================================")
print("[ShopperRewards] Starting shopper rewards service")
print("[ShopperRewards] ========================================")

config_name = os.getenv('FLASK_ENV', 'production')
print(f"[ShopperRewards] Config: {config_name}")
print(f"[ShopperRewards] PORT: {os.getenv('PORT', 'not set')}")
print(f"[ShopperRewards] DATABASE_URL: {'set' if os.getenv('DATABASE_URL') else 'NOT SET'}")
print(f"[ShopperRewards] Safaricom: {os.getenv('SAFARICOM_ENVIRONMENT', 'sandbox')}")

try:
    from shopper_rewards import create_app
    app = create_app(config_name)
    print(f"[ShopperRewards] Routes: {len(list(app.url_map.iter_rules()))}")
except Exception as e:
    print(f"[ShopperRewards] FATAL ERROR during app creation: {e}")
    traceback.print_exc()
    sys.exit(1)

if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=os.getenv('FLASK_ENV') == 'development'
    )
