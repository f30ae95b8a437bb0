# giftshop/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, wait_random, retry_if_exception_type
import requests
import redis

from giftshop.utils.settings import ALLOCATION_RETRY_ATTEMPTS


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def allocation_retry(exc_type):
    # inny request zabral kody miedzy SELECT a UPDATE, wybieramy jeszcze raz
    return retry(
        reraise=True,
        stop=stop_after_attempt(ALLOCATION_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.01, min=0.01, max=0.2) + wait_random(0, 0.02),
        retry=retry_if_exception_type(exc_type),
    )
